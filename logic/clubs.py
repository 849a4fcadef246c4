"""
Club data model.

Clubs are owned by the club directory; this module only holds transient
snapshots of them. The directory returns two shapes (unplaced clubs carry
top-level ``x``/``y``, placed clubs a nested ``coordinates`` object) and both
are normalised into a single ``Club`` model here.
"""

import math
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict

ClubId = Union[int, str]


class Coordinates(BaseModel):
    """Geographic position of a placed club (x = longitude, y = latitude)."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class Club(BaseModel):
    """Snapshot of a club as last seen from the directory."""

    model_config = ConfigDict(frozen=True)

    id: ClubId
    name: str = ""
    description: str = ""
    category: str = ""
    coordinates: Optional[Coordinates] = None

    @property
    def is_placed(self) -> bool:
        return self.coordinates is not None

    def unplaced(self) -> "Club":
        """Return a copy of this club with its coordinates cleared."""
        return self.model_copy(update={"coordinates": None})

    def placed_at(self, lng: float, lat: float) -> "Club":
        """Return a copy of this club positioned at ``(lng, lat)``."""
        return self.model_copy(update={"coordinates": Coordinates(x=lng, y=lat)})

    def display_fields(self) -> Dict[str, Any]:
        """Fields shown in the club detail view."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
        }


def as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _has_xy(obj: Dict[str, Any]) -> bool:
    """Check if a raw record has usable x,y coordinates."""
    return as_number(obj.get("x")) is not None and as_number(obj.get("y")) is not None


def extract_coordinates(data: Dict[str, Any]) -> Optional[Coordinates]:
    """Pull coordinates out of a raw directory record, if it has valid ones.

    The nested ``coordinates`` object wins over top-level ``x``/``y``.
    """
    nested = data.get("coordinates")
    if isinstance(nested, dict) and _has_xy(nested):
        return Coordinates(x=as_number(nested["x"]), y=as_number(nested["y"]))
    if _has_xy(data):
        return Coordinates(x=as_number(data["x"]), y=as_number(data["y"]))
    return None


def club_from_record(data: Dict[str, Any]) -> Club:
    """Build a ``Club`` from a raw directory record.

    Raises:
        ValueError: If the record has no ``id``.
    """
    if data.get("id") is None:
        raise ValueError("Club record is missing 'id'")

    return Club(
        id=data["id"],
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        category=str(data.get("category") or ""),
        coordinates=extract_coordinates(data),
    )


def parse_clubs(records: Iterable[Any]) -> List[Club]:
    """Parse a list of raw directory records, skipping malformed entries."""
    clubs = []
    for record in records:
        if not isinstance(record, dict):
            continue
        try:
            clubs.append(club_from_record(record))
        except ValueError:
            continue
    return clubs


def derive_categories(clubs: Iterable[Club]) -> List[str]:
    """Distinct categories in first-appearance order."""
    seen = []
    for club in clubs:
        if club.category not in seen:
            seen.append(club.category)
    return seen
