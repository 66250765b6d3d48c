"""Comment endpoints — threaded comments on map features.

Comments are keyed by feature id. Sentiment is attached for pro authors and
never blocks comment creation. The CSV export of all comments and the
sentiment analytics are pro only.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Header, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel

from commap.comments import (
    comments_filename,
    comments_to_csv,
    sentiment_breakdown,
    submit_comment,
)
from commap.errors import AuthorizationDenied
from commap.exporters import json_download
from commap.gate import ExportGate

router = APIRouter(prefix="/api/comments", tags=["comments"])


class CommentRequest(BaseModel):
    comment_text: str
    feature_id: str
    feature_coordinates: Any = None
    feature_geometry: Optional[dict] = None


def _get_store(request: Request):
    store = getattr(request.app.state, "comment_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Comment store not available")
    return store


@router.get("")
async def list_comments(request: Request, feature_id: Optional[str] = Query(None)):
    """Comments on one feature, newest first."""
    if not feature_id:
        raise HTTPException(status_code=400, detail="feature_id is required")
    store = _get_store(request)
    return {"comments": [c.to_dict() for c in store.list_for(feature_id)]}


@router.post("")
async def create_comment(
    body: CommentRequest,
    request: Request,
    x_user_id: Optional[str] = Header(None),
    x_tier: Optional[str] = Header(None),
):
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    store = _get_store(request)
    try:
        comment = submit_comment(
            store,
            feature_id=body.feature_id,
            comment_text=body.comment_text,
            user_id=x_user_id,
            tier=x_tier or "free",
            target={
                "feature_coordinates": body.feature_coordinates,
                "feature_geometry": body.feature_geometry,
            },
            analyzer=getattr(request.app.state, "sentiment", None),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"comment": comment.to_dict()}


@router.get("/export")
async def export_comments(request: Request, x_tier: Optional[str] = Header(None)):
    """All comments as ``spatial-comments-<date>.csv`` (pro only)."""
    store = _get_store(request)
    try:
        csv_text = ExportGate(x_tier or "free", "Pro subscription required").run(
            comments_to_csv, store.all()
        )
    except AuthorizationDenied as e:
        raise HTTPException(status_code=403, detail=e.prompt)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{comments_filename()}"'},
    )


@router.get("/analytics")
async def comments_analytics(request: Request, x_tier: Optional[str] = Header(None)):
    """Sentiment breakdown of analyzed comments (pro only)."""
    store = _get_store(request)
    try:
        return ExportGate(x_tier or "free", "Pro subscription required").run(
            sentiment_breakdown, store.all()
        )
    except AuthorizationDenied as e:
        raise HTTPException(status_code=403, detail=e.prompt)


@router.get("/analytics/export")
async def export_comments_analytics(request: Request, x_tier: Optional[str] = Header(None)):
    """The sentiment breakdown as ``comments-sentiment-analysis.json`` (pro only)."""
    store = _get_store(request)
    try:
        download = ExportGate(x_tier or "free").run(
            json_download,
            {"type": "comments_sentiment", "data": sentiment_breakdown(store.all())},
            "comments-sentiment-analysis",
        )
    except AuthorizationDenied as e:
        raise HTTPException(status_code=403, detail=e.prompt)
    return Response(
        content=download.as_bytes(),
        media_type=download.media_type,
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )
