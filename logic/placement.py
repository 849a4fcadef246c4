"""
Club placement state machine.

This module holds the pure placement logic: a single state object and a
reducer that applies one discrete event at a time and returns the next state
together with the side-effect commands the caller must carry out (add a
marker, send a coordinate assignment, drop a marker).

Queue rules:
- The queue only ever holds unplaced clubs of the selected category.
- Order is the order of the latest unplaced-club fetch, except clubs pinned
  to the front: the most recently moved club, and clubs whose assignment
  failed. Moving another club releases the previous move pin.
- Categories come from every record of the latest unplaced-club fetch, so
  a category stays listed while all of its clubs are placed.
- A pending moving club always wins the selection when its category's queue
  is recomputed, and is consumed by that recompute.
- Clubs popped by a map click stay in ``pending`` until the directory
  acknowledges the assignment; a failed assignment puts the club back at the
  front of its queue.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from .clubs import Club, ClubId, derive_categories


# =========================
# State
# =========================

@dataclass(frozen=True)
class PendingAssignment:
    """A club popped from the queue whose assignment is not yet acknowledged."""

    club: Club
    lng: float
    lat: float


@dataclass(frozen=True)
class PlacementState:
    known_clubs: List[Club] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    selected_category: Optional[str] = None
    queue: List[Club] = field(default_factory=list)
    selection: Optional[Club] = None
    placement_mode: bool = True
    moving_club: Optional[Club] = None
    front_ids: List[ClubId] = field(default_factory=list)
    moved_id: Optional[ClubId] = None
    pending: Dict[ClubId, PendingAssignment] = field(default_factory=dict)
    fetch_generation: int = 0
    status: str = ""


# =========================
# Events
# =========================

@dataclass(frozen=True)
class ClubsFetched:
    clubs: List[Club]
    generation: int = 0


@dataclass(frozen=True)
class FetchFailed:
    error: str


@dataclass(frozen=True)
class CategorySelected:
    category: str


@dataclass(frozen=True)
class PlacementModeToggled:
    enabled: bool


@dataclass(frozen=True)
class MapClicked:
    lng: float
    lat: float


@dataclass(frozen=True)
class QueueItemSelected:
    club_id: ClubId


@dataclass(frozen=True)
class MoveConfirmed:
    """The directory cleared the club's coordinates."""

    club: Club


@dataclass(frozen=True)
class MoveFailed:
    club: Club
    error: str


@dataclass(frozen=True)
class AssignmentConfirmed:
    club_id: ClubId


@dataclass(frozen=True)
class AssignmentFailed:
    club_id: ClubId
    error: str


@dataclass(frozen=True)
class StatusReported:
    message: str


# =========================
# Commands
# =========================

@dataclass(frozen=True)
class AddMarker:
    lng: float
    lat: float
    club: Club


@dataclass(frozen=True)
class AssignCoordinates:
    club: Club
    lng: float
    lat: float


@dataclass(frozen=True)
class DropMarker:
    club_id: ClubId


Command = Any
Result = Tuple[PlacementState, List[Command]]


# =========================
# Queue helpers
# =========================

def _find(clubs: List[Club], club_id: ClubId) -> Optional[Club]:
    return next((c for c in clubs if c.id == club_id), None)


def _without(clubs: List[Club], club_id: ClubId) -> List[Club]:
    return [c for c in clubs if c.id != club_id]


def _with_category(categories: List[str], category: str) -> List[str]:
    return categories if category in categories else categories + [category]


def order_queue(clubs: List[Club], front_ids: List[ClubId]) -> List[Club]:
    """Order clubs by fetch order with pinned clubs moved to the front.

    Args:
        clubs: Candidate clubs in fetch order.
        front_ids: Pinned club ids, most recent first.

    Returns:
        New ordered list.
    """
    front = [c for c in (_find(clubs, cid) for cid in front_ids) if c is not None]
    front_set = {c.id for c in front}
    return front + [c for c in clubs if c.id not in front_set]


def filter_queue(state: PlacementState, category: str) -> List[Club]:
    """Unplaced, non-pending clubs of ``category`` in fetch order."""
    return [
        c for c in state.known_clubs
        if c.category == category and not c.is_placed and c.id not in state.pending
    ]


def recompute_queue(state: PlacementState, keep_selection: bool = False) -> PlacementState:
    """Rebuild the queue for the selected category.

    Args:
        state: Current state.
        keep_selection: Keep the current selection if it is still queued.

    Returns:
        Next state. Unchanged if no category has been selected yet.
    """
    category = state.selected_category
    if category is None:
        return state

    known = state.known_clubs
    front_ids = state.front_ids
    moving = state.moving_club

    if moving is not None and moving.category == category:
        moving = moving.unplaced()
        if _find(known, moving.id) is None:
            known = [moving] + known
        front_ids = [moving.id] + [cid for cid in front_ids if cid != moving.id]
    else:
        moving = None

    pending = {cid: p for cid, p in state.pending.items()
               if moving is None or cid != moving.id}
    state = replace(state, known_clubs=known, front_ids=front_ids, pending=pending)
    queue = order_queue(filter_queue(state, category), front_ids)

    if moving is not None:
        selection = _find(queue, moving.id)
        return replace(state, queue=queue, selection=selection, moving_club=None)

    selection = None
    if keep_selection and state.selection is not None:
        selection = _find(queue, state.selection.id)
    if selection is None and queue:
        selection = queue[0]

    return replace(state, queue=queue, selection=selection)


# =========================
# Event handlers
# =========================

def _on_clubs_fetched(state: PlacementState, event: ClubsFetched) -> Result:
    # A slower, older fetch must not overwrite a newer snapshot
    if event.generation < state.fetch_generation:
        return state, []

    known = [c for c in event.clubs if not c.is_placed and c.id not in state.pending]
    known_ids = {c.id for c in known}
    state = replace(
        state,
        known_clubs=known,
        categories=derive_categories(event.clubs),
        front_ids=[cid for cid in state.front_ids if cid in known_ids],
        moved_id=state.moved_id if state.moved_id in known_ids else None,
        fetch_generation=event.generation,
    )
    return recompute_queue(state, keep_selection=True), []


def _on_fetch_failed(state: PlacementState, event: FetchFailed) -> Result:
    return replace(state, status=f"Error fetching clubs: {event.error}"), []


def _on_category_selected(state: PlacementState, event: CategorySelected) -> Result:
    state = replace(state, selected_category=event.category)
    return recompute_queue(state), []


def _on_mode_toggled(state: PlacementState, event: PlacementModeToggled) -> Result:
    return replace(state, placement_mode=bool(event.enabled)), []


def _on_map_clicked(state: PlacementState, event: MapClicked) -> Result:
    if not state.placement_mode or not state.queue:
        return state, []

    club = state.selection if state.selection is not None else state.queue[0]
    queue = _without(state.queue, club.id)
    known = _without(state.known_clubs, club.id)
    pending = dict(state.pending)
    pending[club.id] = PendingAssignment(club=club, lng=event.lng, lat=event.lat)

    state = replace(
        state,
        queue=queue,
        selection=queue[0] if queue else None,
        known_clubs=known,
        front_ids=[cid for cid in state.front_ids if cid != club.id],
        moved_id=None if state.moved_id == club.id else state.moved_id,
        pending=pending,
    )
    commands = [
        AddMarker(lng=event.lng, lat=event.lat, club=club),
        AssignCoordinates(club=club, lng=event.lng, lat=event.lat),
    ]
    return state, commands


def _on_queue_item_selected(state: PlacementState, event: QueueItemSelected) -> Result:
    club = _find(state.queue, event.club_id)
    if club is None:
        return state, []
    return replace(state, selection=club), []


def _on_move_confirmed(state: PlacementState, event: MoveConfirmed) -> Result:
    club = event.club
    front_ids = state.front_ids
    if state.moved_id is not None and state.moved_id != club.id:
        front_ids = [cid for cid in front_ids if cid != state.moved_id]

    state = replace(
        state,
        moving_club=club.unplaced(),
        moved_id=club.id,
        front_ids=front_ids,
        selected_category=club.category,
        categories=_with_category(state.categories, club.category),
        status="",
    )
    return recompute_queue(state), []


def _on_move_failed(state: PlacementState, event: MoveFailed) -> Result:
    name = event.club.name or event.club.id
    return replace(state, status=f"Could not move {name}: {event.error}"), []


def _on_assignment_confirmed(state: PlacementState, event: AssignmentConfirmed) -> Result:
    if event.club_id not in state.pending:
        return state, []
    pending = {cid: p for cid, p in state.pending.items() if cid != event.club_id}
    return replace(state, pending=pending), []


def _on_assignment_failed(state: PlacementState, event: AssignmentFailed) -> Result:
    entry = state.pending.get(event.club_id)
    if entry is None:
        return state, []

    club = entry.club.unplaced()
    pending = {cid: p for cid, p in state.pending.items() if cid != club.id}
    known = [club] + _without(state.known_clubs, club.id)

    state = replace(
        state,
        pending=pending,
        known_clubs=known,
        categories=_with_category(state.categories, club.category),
        front_ids=[club.id] + [cid for cid in state.front_ids if cid != club.id],
        status=f"Failed to place {club.name or club.id}: {event.error}",
    )

    if state.selected_category == club.category:
        queue = [club] + _without(state.queue, club.id)
        selection = state.selection if state.selection is not None else club
        state = replace(state, queue=queue, selection=selection)

    return state, [DropMarker(club_id=club.id)]


def _on_status_reported(state: PlacementState, event: StatusReported) -> Result:
    return replace(state, status=event.message), []


_HANDLERS = {
    ClubsFetched: _on_clubs_fetched,
    FetchFailed: _on_fetch_failed,
    CategorySelected: _on_category_selected,
    PlacementModeToggled: _on_mode_toggled,
    MapClicked: _on_map_clicked,
    QueueItemSelected: _on_queue_item_selected,
    MoveConfirmed: _on_move_confirmed,
    MoveFailed: _on_move_failed,
    AssignmentConfirmed: _on_assignment_confirmed,
    AssignmentFailed: _on_assignment_failed,
    StatusReported: _on_status_reported,
}


def reduce(state: PlacementState, event: Any) -> Result:
    """Apply one event to the placement state.

    Args:
        state: Current state (never mutated).
        event: One of the event dataclasses defined in this module.

    Returns:
        Tuple of (next state, commands to execute in order).

    Raises:
        TypeError: If the event type is unknown.
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown placement event: {type(event).__name__}")
    return handler(state, event)


def state_to_dict(state: PlacementState) -> Dict[str, Any]:
    """Serialise the state for API responses and SSE broadcasts."""
    return {
        "categories": list(state.categories),
        "selected_category": state.selected_category,
        "queue": [c.model_dump() for c in state.queue],
        "selection": state.selection.model_dump() if state.selection else None,
        "placement_mode": state.placement_mode,
        "moving_club": state.moving_club.model_dump() if state.moving_club else None,
        "pending": [
            {"id": cid, "name": p.club.name, "x": p.lng, "y": p.lat}
            for cid, p in state.pending.items()
        ],
        "status": state.status,
    }
