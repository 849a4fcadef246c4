"""
Marker synchronisation.

Keeps the live marker set one-to-one with the clubs the directory reports as
placed, and resolves a clicked marker back to its club.
"""

import logging
from typing import Iterable, Optional, Tuple

from logic.clubs import Club, ClubId
from logic.markers import Marker, MarkerSet
from server.errors import DirectoryError

logger = logging.getLogger(__name__)

STALE = "stale"
CONSISTENT = "consistent"


class MarkerSynchronizer:
    """Owns the marker set for one event.

    Attributes:
        directory: Club directory client.
        event_id: Event whose placed clubs are mirrored.
        markers: The live marker set.
        phase: ``STALE`` after a coordinate mutation elsewhere,
            ``CONSISTENT`` once a refresh has completed.
    """

    def __init__(self, directory, event_id: str):
        self.directory = directory
        self.event_id = event_id
        self.markers = MarkerSet()
        self.phase = STALE

    def add_marker(
        self,
        lng: float,
        lat: float,
        club: Optional[Club] = None,
        provisional: bool = False,
    ) -> Marker:
        """Create a marker and register it.

        The club, when given, is the identity the marker's click handler
        resolves to. A provisional club is a queue copy that is swapped for
        the directory's record the first time the marker is resolved.
        """
        marker = self.markers.add(lng, lat, club, provisional=provisional)
        logger.debug("Added marker %s at (%s, %s) for club %s",
                     marker.handle, lng, lat, marker.club_id)
        return marker

    def drop_club(self, club_id: ClubId) -> int:
        """Remove the markers standing for ``club_id``."""
        return len(self.markers.remove_club(club_id))

    def mark_stale(self):
        self.phase = STALE

    async def refresh(self, pending: Iterable[Tuple[Club, float, float]] = ()) -> int:
        """Rebuild the marker set from the directory's placed clubs.

        The fetch happens first; if it fails the current markers are left in
        place and the error propagates. Otherwise every existing marker is torn
        down before the new ones are created.

        Args:
            pending: ``(club, lng, lat)`` for assignments still in flight.
                These keep their marker if the directory response predates
                them.

        Returns:
            Number of markers after the refresh.

        Raises:
            DirectoryError: If the placed-club fetch fails.
        """
        clubs = await self.directory.get_placed_clubs(self.event_id)

        removed = self.markers.clear()
        seen = set()
        for club in clubs:
            if not club.is_placed:
                logger.warning("Skipping placed club %s without coordinates", club.id)
                continue
            self.markers.add(club.coordinates.x, club.coordinates.y, club)
            seen.add(club.id)

        for club, lng, lat in pending:
            if club.id not in seen:
                self.markers.add(lng, lat, club, provisional=True)

        self.phase = CONSISTENT
        logger.info("Refreshed markers for event %s: %d removed, %d added",
                    self.event_id, removed, len(self.markers))
        return len(self.markers)

    async def resolve(self, lng: float, lat: float) -> Optional[Club]:
        """Resolve a clicked position to its club.

        A marker at exactly this position that carries a confirmed club wins.
        Otherwise the directory's find-by-coordinates lookup is used; for a
        provisional marker the queue copy is the fallback.

        Raises:
            DirectoryError: If the directory lookup fails.
        """
        return await self._club_for(self.markers.find_at(lng, lat), lng, lat)

    async def click(self, handle: str) -> Optional[Club]:
        """Click handler for a marker: resolve it to its club."""
        marker = self.markers.get(handle)
        if marker is None:
            return None
        return await self._club_for(marker, marker.lng, marker.lat)

    async def _club_for(self, marker: Optional[Marker], lng: float, lat: float) -> Optional[Club]:
        if marker is None or marker.club is None:
            return await self.directory.find_club_by_coordinates(lng, lat)
        if not marker.provisional:
            return marker.club

        try:
            found = await self.directory.find_club_by_coordinates(lng, lat)
        except DirectoryError as e:
            logger.warning("Lookup for marker %s failed, using queue copy: %s", marker.handle, e)
            return marker.club

        # Not acknowledged yet, or a different club sits at the same spot
        if found is None or str(found.id) != str(marker.club.id):
            return marker.club
        marker.club = found
        marker.provisional = False
        return found

    def to_dict(self) -> dict:
        return {"phase": self.phase, "markers": self.markers.to_list()}
