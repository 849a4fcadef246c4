"""
Map viewport state.

The map widget itself lives in the browser; this module tracks the center and
zoom the service knows about and the cursor style for the current mode.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .clubs import as_number
from .config import INITIAL_LAT, INITIAL_LONG, INITIAL_ZOOM

PLACEMENT_CURSOR = "crosshair"
VIEW_CURSOR = ""


@dataclass
class Viewport:
    long: float = INITIAL_LONG
    lat: float = INITIAL_LAT
    zoom: float = INITIAL_ZOOM

    @classmethod
    def from_params(
        cls,
        x: Optional[Any] = None,
        y: Optional[Any] = None,
        scale: Optional[Any] = None,
        defaults: Optional[Dict[str, float]] = None,
    ) -> "Viewport":
        """Build a viewport from caller-supplied parameters.

        Args:
            x: Longitude, or None to use the default.
            y: Latitude, or None to use the default.
            scale: Zoom level, or None to use the default.
            defaults: Mapping with ``long``, ``lat`` and ``zoom`` fallbacks.

        Returns:
            New Viewport. Unparseable values fall back to the defaults.
        """
        defaults = defaults or {}
        long = as_number(x)
        lat = as_number(y)
        zoom = as_number(scale)
        return cls(
            long=long if long is not None else defaults.get("long", INITIAL_LONG),
            lat=lat if lat is not None else defaults.get("lat", INITIAL_LAT),
            zoom=zoom if zoom is not None else defaults.get("zoom", INITIAL_ZOOM),
        )

    def apply_location(self, data: Optional[Dict[str, Any]]) -> bool:
        """Apply a saved event location ``{location: {x, y}, scale}``.

        Absent or invalid fields leave the current values unchanged.

        Returns:
            True if anything changed.
        """
        if not isinstance(data, dict):
            return False

        changed = False
        location = data.get("location")
        if isinstance(location, dict):
            x = as_number(location.get("x"))
            y = as_number(location.get("y"))
            if x is not None and y is not None:
                self.long, self.lat = x, y
                changed = True

        scale = as_number(data.get("scale"))
        if scale:
            self.zoom = scale
            changed = True

        return changed

    def move_to(self, lng: float, lat: float, zoom: Optional[float] = None):
        """Record an organic pan/zoom from the map widget."""
        self.long = lng
        self.lat = lat
        if zoom is not None:
            self.zoom = zoom

    def to_dict(self) -> Dict[str, float]:
        return {"long": self.long, "lat": self.lat, "zoom": self.zoom}


def cursor_for(placement_mode: bool) -> str:
    """Cursor style for the map canvas in the given mode."""
    return PLACEMENT_CURSOR if placement_mode else VIEW_CURSOR
