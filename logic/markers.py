"""
Marker bookkeeping.

A ``MarkerSet`` maps marker handles to their last-known position and, where
known, the club the marker stands for. It has no I/O; the async
``server.markers.MarkerSynchronizer`` keeps it in step with the directory.
"""

import itertools
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from .clubs import Club, ClubId


@dataclass
class Marker:
    handle: str
    lng: float
    lat: float
    club: Optional[Club] = None
    # Club copy taken from the queue, not yet confirmed by the directory
    provisional: bool = False

    @property
    def club_id(self) -> Optional[ClubId]:
        return self.club.id if self.club is not None else None

    def to_dict(self) -> dict:
        return {
            "handle": self.handle,
            "x": self.lng,
            "y": self.lat,
            "club_id": self.club_id,
            "name": self.club.name if self.club is not None else None,
        }


class MarkerSet:
    """Live set of on-map markers keyed by handle."""

    def __init__(self):
        self._markers: Dict[str, Marker] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._markers)

    def __iter__(self) -> Iterator[Marker]:
        return iter(list(self._markers.values()))

    def __contains__(self, handle: str) -> bool:
        return handle in self._markers

    def add(
        self,
        lng: float,
        lat: float,
        club: Optional[Club] = None,
        provisional: bool = False,
    ) -> Marker:
        """Register a new marker and return it."""
        marker = Marker(
            handle=f"m{next(self._ids)}", lng=lng, lat=lat, club=club, provisional=provisional
        )
        self._markers[marker.handle] = marker
        return marker

    def get(self, handle: str) -> Optional[Marker]:
        return self._markers.get(handle)

    def remove_club(self, club_id: ClubId) -> List[Marker]:
        """Remove every marker standing for ``club_id``."""
        removed = [m for m in self._markers.values() if m.club_id == club_id]
        for marker in removed:
            del self._markers[marker.handle]
        return removed

    def clear(self) -> int:
        """Tear down all markers. Safe on an empty set."""
        count = len(self._markers)
        self._markers.clear()
        return count

    def find_at(self, lng: float, lat: float) -> Optional[Marker]:
        """Exact-position lookup, preferring markers with a known club."""
        matches = [m for m in self._markers.values() if m.lng == lng and m.lat == lat]
        with_club = [m for m in matches if m.club is not None]
        if with_club:
            return with_club[0]
        return matches[0] if matches else None

    def find_by_club(self, club_id: ClubId) -> Optional[Marker]:
        return next((m for m in self._markers.values() if m.club_id == club_id), None)

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {h: (m.lng, m.lat) for h, m in self._markers.items()}

    def to_list(self) -> List[dict]:
        return [m.to_dict() for m in self._markers.values()]
