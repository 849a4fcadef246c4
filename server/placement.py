"""
Placement API routes.

Endpoints the browser uses to drive the placement workflow for an event:
loading the map, choosing a category, toggling placement mode, clicking the
map, selecting and moving clubs, resolving marker clicks, and sending
invitations. Every state change is also pushed over SSE.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from audit_service import AuditLogger
from logic.config import load_config
from server import sessions
from server.broadcast import event_generator, subscribe
from user_context import get_current_user

router = APIRouter(prefix="/api/placement/{event_id}")


class CategoryRequest(BaseModel):
    """Request model for selecting a category."""

    category: str


class ModeRequest(BaseModel):
    """Request model for toggling placement mode."""

    enabled: bool


class PositionRequest(BaseModel):
    """Request model for a map position (x = longitude, y = latitude)."""

    lng: float
    lat: float


class SelectRequest(BaseModel):
    """Request model for selecting a queued club."""

    id: Union[int, str]


class MoveRequest(BaseModel):
    """Request model for moving a club; defaults to the club in the detail view."""

    id: Optional[Union[int, str]] = None


class ViewportRequest(BaseModel):
    """Request model for an organic pan/zoom of the map."""

    lng: float
    lat: float
    zoom: Optional[float] = None


def _loaded_session(event_id: str):
    session = sessions.find_session(event_id)
    if session is None:
        raise HTTPException(404, f"Event '{event_id}' is not loaded")
    return session


@router.post("/load")
async def load_event(
    event_id: str,
    x: Optional[float] = None,
    y: Optional[float] = None,
    scale: Optional[float] = None,
):
    """Load (or reload) the placement view for an event.

    Args:
        event_id: Event to lay out.
        x: Optional initial longitude.
        y: Optional initial latitude.
        scale: Optional initial zoom.

    Returns:
        Full placement state snapshot.
    """
    session = sessions.get_session(event_id)
    return await session.load(x, y, scale)


@router.get("/state")
async def get_state(event_id: str):
    """Get the current placement state for an event."""
    return _loaded_session(event_id).snapshot()


@router.post("/clubs/reload")
async def reload_clubs(event_id: str):
    """Re-fetch unplaced clubs and recompute categories and queue."""
    session = _loaded_session(event_id)
    ok = await session.reload_clubs()
    return {"success": ok, "state": session.snapshot()}


@router.post("/category")
async def select_category(event_id: str, data: CategoryRequest):
    """Select a category and rebuild the queue."""
    session = _loaded_session(event_id)
    await session.set_category(data.category)
    return session.snapshot()


@router.post("/mode")
async def set_mode(event_id: str, data: ModeRequest):
    """Switch between placement mode and view mode."""
    session = _loaded_session(event_id)
    await session.set_placement_mode(data.enabled)
    return session.snapshot()


@router.post("/click")
async def map_click(
    event_id: str,
    data: PositionRequest,
    user: str = Depends(get_current_user),
):
    """Handle a click on the map.

    Places the selected club when placement mode is on and the queue is not
    empty; otherwise the click is ignored.

    Returns:
        Dictionary with ``placed`` (club id or None) and the new state.
    """
    session = _loaded_session(event_id)
    club = await session.on_map_click(data.lng, data.lat, user=user)
    return {
        "placed": club.id if club is not None else None,
        "state": session.snapshot(),
    }


@router.post("/select")
async def select_club(event_id: str, data: SelectRequest):
    """Select a queued club without consuming the queue head."""
    session = _loaded_session(event_id)
    if not await session.select_in_queue(data.id):
        raise HTTPException(404, f"Club '{data.id}' is not in the queue")
    return session.snapshot()


@router.post("/move")
async def move_club(
    event_id: str,
    data: MoveRequest,
    user: str = Depends(get_current_user),
):
    """Remove a placed club from the map and re-queue it at the front.

    Raises:
        HTTPException: If no club is given and none is shown, or the club
            is unknown to this session.
    """
    session = _loaded_session(event_id)

    if data.id is None:
        club = session.detail if session.show_detail else None
        if club is None:
            raise HTTPException(400, "No club selected to move")
    else:
        club = session.find_club(data.id)
        if club is None:
            raise HTTPException(404, f"Club '{data.id}' not found")

    moved = await session.begin_move(club, user=user)
    return {"success": moved, "state": session.snapshot()}


@router.post("/refresh")
async def refresh_markers(event_id: str):
    """Rebuild markers from the directory's placed clubs."""
    session = _loaded_session(event_id)
    ok = await session.refresh()
    return {"success": ok, "state": session.snapshot()}


@router.post("/resolve")
async def resolve_position(event_id: str, data: PositionRequest):
    """Resolve a marker click by position and open the club detail view."""
    session = _loaded_session(event_id)
    club = await session.resolve(data.lng, data.lat)
    return {"club": club.display_fields() if club is not None else None}


@router.post("/markers/{handle}/click")
async def click_marker(event_id: str, handle: str):
    """Resolve a marker click by marker handle and open the club detail view."""
    session = _loaded_session(event_id)
    club = await session.click_marker(handle)
    return {"club": club.display_fields() if club is not None else None}


@router.post("/detail/close")
async def close_detail(event_id: str):
    session = _loaded_session(event_id)
    await session.close_detail()
    return {"success": True}


@router.post("/viewport")
async def move_viewport(event_id: str, data: ViewportRequest):
    """Record the map's current center and zoom (not persisted)."""
    session = _loaded_session(event_id)
    await session.move_viewport(data.lng, data.lat, data.zoom)
    return session.viewport.to_dict()


@router.post("/invitations")
async def send_invitations(event_id: str):
    """Send invitation emails for the event and report the outcome."""
    session = _loaded_session(event_id)
    return await session.send_invitations()


@router.get("/history")
def get_history(event_id: str, limit: Optional[int] = None):
    """Get the most recent placement actions for an event.

    Args:
        event_id: Event to filter by.
        limit: Maximum number of entries (defaults to ``history_limit``).
    """
    if limit is None:
        limit = load_config()["history_limit"]
    if limit < 1:
        raise HTTPException(400, "limit must be positive")
    return {"logs": AuditLogger.get_logs(event_id=event_id, limit=limit)}


@router.get("/stream")
async def stream(event_id: str):
    """Server-Sent Events (SSE) endpoint for placement updates.

    Clients connect to this endpoint to receive a state snapshot whenever the
    queue, markers, detail view or status changes.

    Returns:
        StreamingResponse with text/event-stream content type.
    """
    queue = subscribe(event_id)
    session = sessions.find_session(event_id)
    if session is not None:
        await queue.put({"type": "placement_state", "state": session.snapshot()})

    return StreamingResponse(event_generator(event_id, queue), media_type="text/event-stream")
