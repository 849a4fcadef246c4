"""
Placement session registry.

Keeps one ``PlacementSession`` per event for the lifetime of the process,
wired to the configured directory client, the audit log and SSE broadcasting.
"""

import logging
from typing import Dict, Optional

from audit_service import AuditLogger
from logic.config import load_config
from server.broadcast import publish_state
from server.directory import ClubDirectoryClient
from server.session import PlacementSession

logger = logging.getLogger(__name__)

# Event id -> session
sessions: Dict[str, PlacementSession] = {}


def create_directory_client() -> ClubDirectoryClient:
    config = load_config()
    return ClubDirectoryClient(config["directory_url"], timeout=config["request_timeout"])


def create_session(event_id: str) -> PlacementSession:
    """Build a new session for an event from the current configuration."""
    config = load_config()
    return PlacementSession(
        event_id,
        create_directory_client(),
        placement_mode=config["placement_mode_default"],
        initial_view=config["initial_view"],
        audit=AuditLogger,
        listener=publish_state,
    )


def get_session(event_id: str) -> PlacementSession:
    """Return the session for an event, creating it if needed."""
    key = str(event_id)
    session = sessions.get(key)
    if session is None:
        session = create_session(key)
        sessions[key] = session
        logger.info("Created placement session for event %s", key)
    return session


def find_session(event_id: str) -> Optional[PlacementSession]:
    return sessions.get(str(event_id))


def register_session(session: PlacementSession) -> PlacementSession:
    """Install a pre-built session (replacing any existing one)."""
    sessions[session.event_id] = session
    return session


async def close_all():
    """Close every session, cancelling in-flight requests."""
    for key in list(sessions):
        await sessions.pop(key).close()
