"""Community Map — feature drawing, upload and export service.

Main FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.config import settings
from app.routers.comments import router as comments_router
from app.routers.features import router as features_router
from commap.comments import InMemoryCommentStore, KeywordSentiment
from commap.notices import NoticeBus
from commap.session import MapSession


def create_session(notices: NoticeBus | None = None) -> MapSession:
    """Build a MapSession from settings."""
    return MapSession(
        tier=settings.default_tier,
        notices=notices,
        point_limit=settings.free_point_limit,
        create_delay=settings.create_rebuild_delay,
        render_scale=settings.render_scale,
        pdf_margin_mm=settings.pdf_margin_mm,
        map_size=(settings.map_width, settings.map_height),
        file_base=settings.export_file_base,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"{settings.app_name} - INITIALIZING")

    notices = NoticeBus()
    app.state.notices = notices
    app.state.notice_queue = notices.subscribe()
    app.state.map_session = create_session(notices)
    app.state.comment_store = InMemoryCommentStore()
    app.state.sentiment = KeywordSentiment()
    logger.info(
        f"Map session ready (tier={settings.default_tier}, "
        f"free point limit={settings.free_point_limit})"
    )

    yield

    app.state.map_session.collection.clear()
    logger.info(f"{settings.app_name} - SHUTDOWN")


app = FastAPI(
    title=settings.app_name,
    description="Collaborative map drawing, comments and export",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(features_router)
app.include_router(comments_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "operational",
        "version": "0.1.0",
        "system": settings.app_name,
    }
