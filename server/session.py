"""
Placement session.

A ``PlacementSession`` owns all placement state for one event: the reducer
state (queue, selection, mode, pending assignments), the marker
synchronizer, the viewport and the club detail view. Every mutation goes
through a single ``asyncio.Lock`` so events are applied one at a time in
arrival order.

Coordinate assignments are sent in background tasks; their outcome is fed
back into the reducer as ``AssignmentConfirmed`` / ``AssignmentFailed``.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from logic.clubs import Club, ClubId
from logic.placement import (
    AddMarker,
    AssignCoordinates,
    AssignmentConfirmed,
    AssignmentFailed,
    CategorySelected,
    ClubsFetched,
    DropMarker,
    FetchFailed,
    MapClicked,
    MoveConfirmed,
    MoveFailed,
    PlacementModeToggled,
    PlacementState,
    QueueItemSelected,
    StatusReported,
    reduce,
    state_to_dict,
)
from logic.viewport import Viewport, cursor_for
from server.errors import DirectoryError
from server.markers import MarkerSynchronizer

logger = logging.getLogger(__name__)

Listener = Callable[[str, Dict[str, Any]], Awaitable[None]]


def _same_id(a: Any, b: Any) -> bool:
    return a == b or str(a) == str(b)


class PlacementSession:
    """Placement workflow for a single event.

    Attributes:
        event_id: Event being laid out.
        directory: Club directory client.
        markers: Marker synchronizer for this event.
        state: Current reducer state.
        viewport: Last known map center and zoom.
        detail: Club shown in the detail view, if any.
        audit: Optional audit logger (``audit_service.AuditLogger``).
        listener: Optional coroutine called with every new snapshot.
    """

    def __init__(
        self,
        event_id: str,
        directory,
        placement_mode: bool = True,
        initial_view: Optional[Dict[str, float]] = None,
        audit=None,
        listener: Optional[Listener] = None,
    ):
        self.event_id = str(event_id)
        self.directory = directory
        self.markers = MarkerSynchronizer(directory, self.event_id)
        self.state = PlacementState(placement_mode=placement_mode)
        self.initial_view = initial_view or {}
        self.viewport = Viewport.from_params(defaults=self.initial_view)
        self.detail: Optional[Club] = None
        self.show_detail = False
        self.loading = False
        self.invitation_results: Optional[Dict[str, Any]] = None
        self.audit = audit
        self.listener = listener
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._generation = 0

    # =========================
    # Internals (lock held)
    # =========================

    def _apply(self, event) -> List[Any]:
        self.state, commands = reduce(self.state, event)
        return commands

    def _run(self, commands: List[Any], user: str):
        for command in commands:
            if isinstance(command, AddMarker):
                self.markers.add_marker(command.lng, command.lat, command.club, provisional=True)
            elif isinstance(command, AssignCoordinates):
                self._spawn(self._assign(command, user))
            elif isinstance(command, DropMarker):
                self.markers.drop_club(command.club_id)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fetch_clubs(self) -> bool:
        self._generation += 1
        generation = self._generation
        try:
            clubs = await self.directory.get_unplaced_clubs(self.event_id)
        except DirectoryError as e:
            logger.error("Error fetching clubs for event %s: %s", self.event_id, e)
            self._apply(FetchFailed(error=e.message))
            return False

        self._apply(ClubsFetched(clubs=clubs, generation=generation))
        return True

    async def _refresh_markers(self, exclude: Optional[ClubId] = None) -> bool:
        pending = [
            (p.club, p.lng, p.lat)
            for cid, p in self.state.pending.items()
            if exclude is None or not _same_id(cid, exclude)
        ]
        try:
            await self.markers.refresh(pending)
        except DirectoryError as e:
            logger.error("Error fetching existing clubs for event %s: %s", self.event_id, e)
            self._apply(StatusReported(f"Error fetching existing clubs: {e.message}"))
            return False
        return True

    def _record(self, action: str, *args):
        """Write an audit entry. History failures never break placement."""
        if self.audit is None:
            return
        try:
            getattr(self.audit, action)(*args)
        except Exception:
            logger.exception("Failed to record %s for event %s", action, self.event_id)

    async def _notify(self):
        if self.listener is not None:
            await self.listener(self.event_id, self.snapshot())

    async def _assign(self, command: AssignCoordinates, user: str):
        club = command.club
        try:
            await self.directory.assign_coordinates(club.id, command.lng, command.lat)
        except DirectoryError as e:
            logger.error("Failed to update club %s coordinates: %s", club.id, e)
            async with self._lock:
                self._run(self._apply(AssignmentFailed(club_id=club.id, error=e.message)), user)
            self._record(
                "log_place_failed", user, self.event_id, club.id, club.name,
                command.lng, command.lat, e.message,
            )
        else:
            async with self._lock:
                self._apply(AssignmentConfirmed(club_id=club.id))
            self._record(
                "log_place", user, self.event_id, club.id, club.name, command.lng, command.lat
            )
        await self._notify()

    # =========================
    # Lifecycle
    # =========================

    async def load(self, x: Any = None, y: Any = None, scale: Any = None) -> Dict[str, Any]:
        """Initialise the viewport, markers and club queue.

        Caller parameters seed the viewport; the saved event location, when
        present, overrides them.
        """
        async with self._lock:
            self.viewport = Viewport.from_params(x, y, scale, defaults=self.initial_view)
            try:
                location = await self.directory.get_event_location(self.event_id)
            except DirectoryError as e:
                logger.error("Error fetching map location for event %s: %s", self.event_id, e)
                self._apply(StatusReported(f"Error fetching map location: {e.message}"))
            else:
                self.viewport.apply_location(location)

            await self._refresh_markers()
            await self._fetch_clubs()

        await self._notify()
        return self.snapshot()

    async def wait_for_pending(self):
        """Wait for in-flight coordinate assignments to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self):
        """Cancel in-flight requests started by this session."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # =========================
    # Placement workflow
    # =========================

    async def reload_clubs(self) -> bool:
        async with self._lock:
            ok = await self._fetch_clubs()
        await self._notify()
        return ok

    async def set_category(self, category: str):
        async with self._lock:
            self._apply(CategorySelected(category=category))
        await self._notify()

    async def set_placement_mode(self, enabled: bool):
        async with self._lock:
            self._apply(PlacementModeToggled(enabled=enabled))
        await self._notify()

    async def select_in_queue(self, club_id: ClubId) -> bool:
        """Make a queued club the selection. Returns False if not queued."""
        async with self._lock:
            club = next((c for c in self.state.queue if _same_id(c.id, club_id)), None)
            if club is None:
                return False
            self._apply(QueueItemSelected(club_id=club.id))
        await self._notify()
        return True

    async def on_map_click(self, lng: float, lat: float, user: str = "anonymous") -> Optional[Club]:
        """Place the selected club at ``(lng, lat)``.

        Returns:
            The club that was placed, or None if the click was inert.
        """
        async with self._lock:
            commands = self._apply(MapClicked(lng=lng, lat=lat))
            if not commands:
                return None
            self._run(commands, user)

        await self._notify()
        return next(c.club for c in commands if isinstance(c, AssignCoordinates))

    async def begin_move(self, club: Optional[Club] = None, user: str = "anonymous") -> bool:
        """Un-place a club and put it at the front of its category queue.

        Args:
            club: Club to move; defaults to the one in the detail view.
            user: Acting user for the audit trail.

        Returns:
            True if the directory cleared the coordinates.
        """
        if club is None and self.show_detail:
            club = self.detail
        if club is None:
            return False

        async with self._lock:
            try:
                await self.directory.clear_coordinates(club.id)
            except DirectoryError as e:
                logger.error("Error moving club %s: %s", club.id, e)
                self._apply(MoveFailed(club=club, error=e.message))
                moved = False
            else:
                self.markers.mark_stale()
                self.markers.drop_club(club.id)
                await self._refresh_markers(exclude=club.id)
                await self._fetch_clubs()
                self._apply(MoveConfirmed(club=club))
                self.show_detail = False
                moved = True

        if moved:
            old_position = club.coordinates.model_dump() if club.coordinates else None
            self._record("log_unplace", user, self.event_id, club.id, club.name, old_position)

        await self._notify()
        return moved

    async def refresh(self) -> bool:
        async with self._lock:
            ok = await self._refresh_markers()
        await self._notify()
        return ok

    # =========================
    # Detail view
    # =========================

    async def _show(self, club: Optional[Club]) -> Optional[Club]:
        if club is None:
            return None
        async with self._lock:
            self.detail = club
            self.show_detail = True
        await self._notify()
        return club

    async def _report(self, message: str):
        async with self._lock:
            self._apply(StatusReported(message))
        await self._notify()

    async def resolve(self, lng: float, lat: float) -> Optional[Club]:
        """Resolve a marker click at ``(lng, lat)`` and show the club's details."""
        try:
            club = await self.markers.resolve(lng, lat)
        except DirectoryError as e:
            logger.error("Error fetching club at (%s, %s): %s", lng, lat, e)
            await self._report(f"Error fetching club: {e.message}")
            return None
        return await self._show(club)

    async def click_marker(self, handle: str) -> Optional[Club]:
        try:
            club = await self.markers.click(handle)
        except DirectoryError as e:
            logger.error("Error fetching club for marker %s: %s", handle, e)
            await self._report(f"Error fetching club: {e.message}")
            return None
        return await self._show(club)

    async def close_detail(self):
        async with self._lock:
            self.show_detail = False
        await self._notify()

    def find_club(self, club_id: ClubId) -> Optional[Club]:
        """Find a placed club by id (detail view, then markers)."""
        if self.show_detail and self.detail is not None and _same_id(self.detail.id, club_id):
            return self.detail
        for marker in self.markers.markers:
            if marker.club is not None and _same_id(marker.club.id, club_id):
                return marker.club
        return None

    # =========================
    # Viewport & invitations
    # =========================

    async def move_viewport(self, lng: float, lat: float, zoom: Optional[float] = None):
        async with self._lock:
            self.viewport.move_to(lng, lat, zoom)

    async def send_invitations(self) -> Dict[str, Any]:
        """Send the event's invitation emails and report the outcome."""
        async with self._lock:
            self.loading = True
            self.invitation_results = None
            self._apply(StatusReported("Sending invitations..."))
        await self._notify()

        data: Optional[Dict[str, Any]] = None
        try:
            data = await self.directory.send_invitations(self.event_id)
        except DirectoryError as e:
            logger.error("Error sending invitations for event %s: %s", self.event_id, e)
            message = f"Error: {e.message}"
        else:
            summary = data.get("summary")
            if isinstance(summary, dict):
                message = (
                    f"Invitations processed: {summary.get('successful', 0)} sent "
                    f"successfully, {summary.get('failed', 0)} failed"
                )
            else:
                message = data.get("message") or "Invitations sent successfully!"

        async with self._lock:
            self.loading = False
            self.invitation_results = data
            self._apply(StatusReported(message))
        await self._notify()

        return {"status": message, "results": data}

    # =========================
    # Snapshot
    # =========================

    def snapshot(self) -> Dict[str, Any]:
        """Full view state for API responses and SSE broadcasts."""
        snapshot = state_to_dict(self.state)
        snapshot.update({
            "event_id": self.event_id,
            "cursor": cursor_for(self.state.placement_mode),
            "viewport": self.viewport.to_dict(),
            "markers": self.markers.markers.to_list(),
            "marker_phase": self.markers.phase,
            "detail": self.detail.display_fields() if self.detail and self.show_detail else None,
            "show_detail": self.show_detail,
            "loading": self.loading,
            "invitation_results": self.invitation_results,
        })
        return snapshot
