"""
Club directory client.

HTTP/JSON client for the services that own clubs and event locations. All
endpoints are POSTs with a JSON body; every call is bounded by the configured
timeout and failures surface as ``DirectoryError``.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from logic.clubs import Club, ClubId, club_from_record, parse_clubs
from server.errors import DirectoryError, DirectoryTimeoutError

logger = logging.getLogger(__name__)

EVENT_LOCATION_PATH = "/api/getEventLocation"
UNPLACED_CLUBS_PATH = "/api/getUnplacedClubs"
PLACED_CLUBS_PATH = "/api/getExistingClubs"
UPDATE_CLUB_PATH = "/api/updateClub"
FIND_BY_COORDS_PATH = "/api/getClubByCoords"
SEND_INVITATIONS_PATH = "/api/send-invitations"

# Action names understood by the update endpoint
UPDATE_ACTIONS = {
    "assign": "updateCoordinates",
    "clear": "removeCoordinates",
}


def _error_message(body: Any, status: int) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return f"HTTP error! status: {status}"


class ClubDirectoryClient:
    """Client for the club directory and event location endpoints.

    Attributes:
        base_url: Root URL of the directory service, without trailing slash.
        timeout: Total per-request timeout in seconds.
    """

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        """POST ``payload`` to ``path`` and return the decoded body.

        Returns:
            Decoded JSON, the raw text if the body is not JSON, or None
            for an empty body.

        Raises:
            DirectoryTimeoutError: If the request timed out.
            DirectoryError: On connection failure or a non-2xx status.
        """
        url = f"{self.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=payload) as resp:
                    text = await resp.text()
                    body = _decode(text)
                    if resp.status >= 400:
                        raise DirectoryError(
                            _error_message(body, resp.status),
                            status=resp.status,
                            context={"path": path},
                        )
                    return body
        except asyncio.TimeoutError as e:
            raise DirectoryTimeoutError(
                f"Request timed out after {self.timeout}s", context={"path": path}
            ) from e
        except aiohttp.ClientError as e:
            raise DirectoryError(f"Connection error: {e}", context={"path": path}) from e

    async def _post_list(self, path: str, payload: Dict[str, Any]) -> List[Any]:
        body = await self._post(path, payload)
        if not isinstance(body, list):
            raise DirectoryError("Expected a list of clubs", context={"path": path})
        return body

    async def get_event_location(self, event_id: str) -> Dict[str, Any]:
        """Fetch the saved map center and zoom for an event.

        Returns:
            Dictionary with optional ``location`` ({x, y}) and ``scale``.
        """
        body = await self._post(EVENT_LOCATION_PATH, {"eventID": event_id})
        return body if isinstance(body, dict) else {}

    async def get_unplaced_clubs(self, event_id: str) -> List[Club]:
        records = await self._post_list(UNPLACED_CLUBS_PATH, {"eventID": event_id})
        return parse_clubs(records)

    async def get_placed_clubs(self, event_id: str) -> List[Club]:
        """Fetch placed clubs. Entries without coordinates are kept as-is."""
        records = await self._post_list(PLACED_CLUBS_PATH, {"eventID": event_id})
        return parse_clubs(records)

    async def update_club(
        self,
        action: str,
        club_id: ClubId,
        x: Optional[float] = None,
        y: Optional[float] = None,
    ):
        """Assign or clear a club's coordinates.

        Args:
            action: "assign" or "clear".
            club_id: Club to update.
            x: Longitude (assign only).
            y: Latitude (assign only).

        Raises:
            ValueError: For an unknown action or missing assign coordinates.
            DirectoryError: If the directory rejects the update.
        """
        if action not in UPDATE_ACTIONS:
            raise ValueError(f"Unknown update action: {action}")

        payload: Dict[str, Any] = {"action": UPDATE_ACTIONS[action], "id": club_id}
        if action == "assign":
            if x is None or y is None:
                raise ValueError("assign requires x and y")
            payload["x"] = x
            payload["y"] = y

        await self._post(UPDATE_CLUB_PATH, payload)
        logger.debug("Club %s updated (%s)", club_id, action)

    async def assign_coordinates(self, club_id: ClubId, x: float, y: float):
        await self.update_club("assign", club_id, x, y)

    async def clear_coordinates(self, club_id: ClubId):
        await self.update_club("clear", club_id)

    async def find_club_by_coordinates(self, x: float, y: float) -> Optional[Club]:
        """Exact-match lookup of the club placed at ``(x, y)``."""
        body = await self._post(
            FIND_BY_COORDS_PATH, {"action": "findByCoords", "x": x, "y": y}
        )
        if not isinstance(body, dict) or not body:
            return None
        try:
            return club_from_record(body)
        except ValueError:
            logger.warning("Ignoring malformed club lookup response: %r", body)
            return None

    async def send_invitations(self, event_id: str) -> Dict[str, Any]:
        """Trigger the batch invitation email for an event.

        Returns:
            ``{summary: {total, successful, failed}}`` or ``{message}``.
        """
        try:
            numeric_id = int(event_id)
        except (TypeError, ValueError):
            raise DirectoryError(f"Invalid event id: {event_id!r}")

        body = await self._post(SEND_INVITATIONS_PATH, {"event_id": numeric_id})
        return body if isinstance(body, dict) else {}


def _decode(text: str) -> Any:
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text
