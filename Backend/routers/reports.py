from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

import logging

from app_utils.constants import CLUSTER_DISTANCE
from app_utils.filtering import FilterPredicate, category_counts
from app_utils.geo import Viewport
from schemas import FilterRequest, ViewportRequest, CategoryResponse
from services.report_pipeline import READY, MapSession, SessionNotReady, SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"])

_registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    return _registry


def _get_session(session_id: str, registry: SessionRegistry) -> MapSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _not_ready(e: SessionNotReady) -> HTTPException:
    return HTTPException(status_code=409, detail=f"Session is {e.state}; reload it first")


# ==================================================
# SESSIONS
# ==================================================
@router.post("/sessions")
def create_session(
    background_tasks: BackgroundTasks,
    wait: bool = Query(True, description="Load before answering; false returns the id at once"),
    registry: SessionRegistry = Depends(get_registry)
):
    """
    Open a map session and load every report from the catalog.
    A failed load still creates the session, in state "failed", so the
    client can retry with /reload.
    With wait=false the session comes back in state "loading" and is loaded
    after the response, so the client can DELETE it to cancel the fetch.
    """
    if not registry.catalog_url:
        raise HTTPException(status_code=503, detail="Report catalog is not configured (CATALOG_URL)")

    session = registry.create(load=wait)
    if not wait:
        background_tasks.add_task(session.load)
    return {"status": "success", "session": session.summary()}


@router.get("/sessions/{session_id}")
def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(session_id, registry)
    return {"status": "success", "session": session.summary()}


@router.post("/sessions/{session_id}/reload")
def reload_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(session_id, registry)
    session.load()
    return {"status": "success", "session": session.summary()}


@router.delete("/sessions/{session_id}")
def close_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    if not registry.close(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"status": "success", "message": f"Session {session_id} closed"}


# ==================================================
# FEATURES + FILTER
# ==================================================
@router.get("/sessions/{session_id}/features")
def get_features(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """All reports as GeoJSON, each carrying its current visibility."""
    session = _get_session(session_id, registry)
    if session.state != READY:
        raise _not_ready(SessionNotReady(session.state))

    return {
        "type": "FeatureCollection",
        "features": [v.feature.to_geojson(visible=v.visible) for v in session.views],
    }


@router.put("/sessions/{session_id}/filter")
def set_filter(
    session_id: str,
    body: FilterRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    session = _get_session(session_id, registry)
    predicate = FilterPredicate(category=body.category or None, keyword=body.keyword or None)
    try:
        views = session.set_filter(predicate)
    except SessionNotReady as e:
        raise _not_ready(e)

    return {
        "status": "success",
        "total": len(views),
        "visible": sum(1 for v in views if v.visible),
        "visible_ids": [v.feature.id for v in views if v.visible],
    }


@router.get("/sessions/{session_id}/categories", response_model=CategoryResponse)
def get_categories(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(session_id, registry)
    return {
        "status": "success",
        "categories": [
            {"category": category, "count": count}
            for category, count in category_counts(session.collection)
        ],
    }


# ==================================================
# VIEWPORT + CLICK
# ==================================================
@router.post("/sessions/{session_id}/viewport")
def update_viewport(
    session_id: str,
    body: ViewportRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    """
    Re-cluster the visible reports for a new pan/zoom state and return the
    markers and badges to draw, in draw order.
    """
    session = _get_session(session_id, registry)
    viewport = Viewport(
        center=(body.center_lon, body.center_lat),
        zoom=body.zoom,
        width=body.width,
        height=body.height,
    )
    distance = body.distance or CLUSTER_DISTANCE

    try:
        render = session.update_viewport(viewport, distance)
    except SessionNotReady as e:
        raise _not_ready(e)

    if render is None:
        raise HTTPException(status_code=409, detail="Viewport superseded by a newer one")

    return {
        "status": "success",
        "generation": render.generation,
        "cluster_count": len(render.clusters),
        "primitives": [p.to_dict() for p in render.primitives],
    }


@router.get("/sessions/{session_id}/hit")
def hit(
    session_id: str,
    x: float = Query(..., description="Pixel x, from the left edge"),
    y: float = Query(..., description="Pixel y, from the top edge"),
    registry: SessionRegistry = Depends(get_registry)
):
    """Resolve a click to the topmost marker or badge under the pixel."""
    session = _get_session(session_id, registry)
    try:
        primitive = session.click(x, y)
    except SessionNotReady as e:
        raise _not_ready(e)

    if primitive is None:
        raise HTTPException(status_code=404, detail="Nothing at this position")
    return {"status": "success", "hit": primitive.to_dict()}
