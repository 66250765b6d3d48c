"""Feature endpoints — drawing, uploads, quota and gated downloads.

The process-wide MapSession lives on ``app.state.map_session``. The caller's
subscription tier arrives in the ``X-Tier`` header; without it the session
tier applies.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel

from commap.errors import (
    AuthorizationDenied,
    IngestError,
    RenderBusy,
    RenderFailure,
    UnsupportedFormat,
)
from commap.exporters import Download
from commap.notices import drain
from commap.quota import point_count
from commap.session import EXPORT_FORMATS, MapSession

router = APIRouter(prefix="/api/features", tags=["features"])


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class UploadRequest(BaseModel):
    """An uploaded file: its name (for the extension) and text content."""
    file_name: str
    content: str


class DrawRequest(BaseModel):
    """A shape the user finished drawing, as GeoJSON geometry."""
    geometry: dict
    properties: dict = {}
    id: Optional[str] = None


class EditRequest(BaseModel):
    coordinates: Any


class JSONExportRequest(BaseModel):
    """Arbitrary data (e.g. a chart config) to offer as a JSON download."""
    data: Any
    file_base: str = "export"


def _get_session(request: Request) -> MapSession:
    session = getattr(request.app.state, "map_session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Map session not available")
    return session


def _tier(session: MapSession, x_tier: Optional[str]) -> str:
    """The caller's tier for this request; the session tier is never changed."""
    return x_tier or session.tier


def _download_response(download: Download) -> Response:
    return Response(
        content=download.as_bytes(),
        media_type=download.media_type,
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )


def _produce(session: MapSession, fmt: str, tier: Optional[str], **kwargs) -> Response:
    try:
        download = session.produce(fmt, tier, **kwargs)
    except AuthorizationDenied as e:
        session.notify_export_error(e, fmt)
        raise HTTPException(status_code=403, detail=e.prompt)
    except RenderBusy as e:
        session.notify_export_error(e, fmt)
        raise HTTPException(status_code=409, detail=str(e))
    except RenderFailure as e:
        session.notify_export_error(e, fmt)
        raise HTTPException(status_code=500, detail=str(e))
    return _download_response(download)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

@router.get("")
async def list_features(request: Request):
    """The canonical collection as GeoJSON, with per-type counts."""
    session = _get_session(request)
    return {
        "collection": session.collection.to_geojson(),
        "counts": session.counts(),
    }


@router.post("/upload")
async def upload(body: UploadRequest, request: Request):
    """Ingest a CSV or GeoJSON upload; features are appended, never replaced."""
    session = _get_session(request)
    try:
        added = session.load(body.content, body.file_name)
    except IngestError as e:
        session.notify_ingest_error(e)
        status = 415 if isinstance(e, UnsupportedFormat) else 400
        raise HTTPException(status_code=status, detail=str(e))
    return {"added": added, "total": len(session.collection)}


# ---------------------------------------------------------------------------
# Drawing
# ---------------------------------------------------------------------------

@router.post("/draw", status_code=202)
async def draw(body: DrawRequest, request: Request, x_tier: Optional[str] = Header(None)):
    """Add a drawn shape. It joins the collection after the create delay."""
    session = _get_session(request)
    tier = _tier(session, x_tier)
    handle = session.draw(body.geometry, body.properties, body.id, tier=tier)
    if handle is None:
        raise HTTPException(status_code=403, detail=session.limit_message(tier))
    return {"accepted": True, "id": handle.get_stable_id()}


@router.put("/{feature_id}")
async def edit(feature_id: str, body: EditRequest, request: Request):
    session = _get_session(request)
    if not session.edit(feature_id, body.coordinates):
        raise HTTPException(status_code=404, detail=f"Feature not found: {feature_id}")
    return {"updated": feature_id}


@router.delete("/{feature_id}")
async def delete(feature_id: str, request: Request):
    session = _get_session(request)
    if not session.delete(feature_id):
        raise HTTPException(status_code=404, detail=f"Feature not found: {feature_id}")
    return {"deleted": feature_id}


@router.post("/{feature_id}/select")
async def select(feature_id: str, request: Request):
    """Click a drawn shape; returns the comment target for the panel."""
    session = _get_session(request)
    selected = session.click(feature_id)
    if selected is None:
        raise HTTPException(status_code=404, detail=f"Feature not found: {feature_id}")
    return selected.as_comment_target()


@router.get("/selected")
async def get_selected(request: Request):
    session = _get_session(request)
    if session.selected is None:
        return {"selected": None}
    return {"selected": session.selected.as_comment_target()}


@router.delete("/selected/clear")
async def clear_selected(request: Request):
    _get_session(request).clear_selection()
    return {"selected": None}


# ---------------------------------------------------------------------------
# Quota
# ---------------------------------------------------------------------------

@router.get("/quota")
async def quota(request: Request, x_tier: Optional[str] = Header(None)):
    """Whether another point may be drawn, and which tools to offer."""
    session = _get_session(request)
    tier = _tier(session, x_tier)
    return {
        "tier": tier,
        "points": point_count(session.quota_features()),
        "limit": session.point_limit,
        "can_add_point": session.can_add_point(tier),
        "tools": session.drawing_tools(tier),
        "message": session.limit_message(tier),
    }


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

@router.get("/export/{fmt}")
async def export(fmt: str, request: Request, x_tier: Optional[str] = Header(None)):
    """Download the collection as csv, kml, json, png or pdf (pro only)."""
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(status_code=404, detail=f"Unsupported export format: {fmt}")
    session = _get_session(request)
    logger.debug(f"Export {fmt} requested (tier={_tier(session, x_tier)})")
    return _produce(session, fmt, x_tier)


@router.post("/export/json")
async def export_json(
    body: JSONExportRequest,
    request: Request,
    x_tier: Optional[str] = Header(None),
):
    """Offer arbitrary structured data as ``<file_base>.json`` (pro only)."""
    session = _get_session(request)
    return _produce(session, "json", x_tier, data=body.data, file_base=body.file_base)


# ---------------------------------------------------------------------------
# Notices
# ---------------------------------------------------------------------------

@router.get("/notices")
async def notices(request: Request):
    """Drain pending user notices (upload results, refused exports, ...)."""
    q = getattr(request.app.state, "notice_queue", None)
    if q is None:
        return []
    return [n.to_dict() for n in drain(q)]
