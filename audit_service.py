"""Audit logging service for tracking placement actions.

This module records every coordinate mutation the placement service
requests (placing a club, a failed placement, un-placing a club for a
move) with the user who triggered it.
"""

import json
from typing import Any, Optional, Dict, List

from database import AuditLog, SessionLocal

ENTITY_TYPE = "club"


def _position(lng: Optional[float], lat: Optional[float]) -> Optional[str]:
    if lng is None or lat is None:
        return None
    return json.dumps({"x": lng, "y": lat})


class AuditLogger:
    """Service for logging placement audit events."""

    @staticmethod
    def _write(
        user: str,
        event_id: str,
        club_id: Any,
        action: str,
        before_value: Optional[str],
        after_value: Optional[str],
        description: str,
    ) -> None:
        db = SessionLocal()
        try:
            log_entry = AuditLog(
                user=user or "anonymous",
                event_id=str(event_id),
                entity_type=ENTITY_TYPE,
                entity_id=str(club_id),
                action=action,
                before_value=before_value,
                after_value=after_value,
                description=description,
            )
            db.add(log_entry)
            db.commit()
        finally:
            db.close()

    @staticmethod
    def log_place(
        user: str,
        event_id: str,
        club_id: Any,
        club_name: str,
        lng: float,
        lat: float,
    ) -> None:
        """Log a club placement acknowledged by the directory.

        Args:
            user: Identifier of the user who placed the club.
            event_id: Event the club belongs to.
            club_id: ID of the placed club.
            club_name: Display name used in the description.
            lng: Assigned longitude.
            lat: Assigned latitude.
        """
        AuditLogger._write(
            user, event_id, club_id, "place",
            before_value=None,
            after_value=_position(lng, lat),
            description=f"Placed {club_name or club_id} at ({lng}, {lat})",
        )

    @staticmethod
    def log_place_failed(
        user: str,
        event_id: str,
        club_id: Any,
        club_name: str,
        lng: float,
        lat: float,
        error: str,
    ) -> None:
        """Log a placement the directory rejected."""
        AuditLogger._write(
            user, event_id, club_id, "place_failed",
            before_value=None,
            after_value=_position(lng, lat),
            description=f"Failed to place {club_name or club_id}: {error}",
        )

    @staticmethod
    def log_unplace(
        user: str,
        event_id: str,
        club_id: Any,
        club_name: str,
        old_position: Optional[Dict[str, float]] = None,
    ) -> None:
        """Log a club whose coordinates were cleared so it can be moved.

        Args:
            user: Identifier of the user who moved the club.
            event_id: Event the club belongs to.
            club_id: ID of the club.
            club_name: Display name used in the description.
            old_position: Previous position {x, y}, if known.
        """
        before = json.dumps(old_position) if old_position else None
        AuditLogger._write(
            user, event_id, club_id, "unplace",
            before_value=before,
            after_value=None,
            description=f"Removed {club_name or club_id} from the map for moving",
        )

    @staticmethod
    def get_logs(
        event_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        user: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Retrieve audit logs with optional filtering.

        Args:
            event_id: Filter by event.
            entity_id: Filter by club ID.
            user: Filter by user.
            limit: Maximum number of logs to return.
            offset: Number of logs to skip.

        Returns:
            List of audit log entries as dictionaries, newest first.
        """
        db = SessionLocal()
        try:
            query = db.query(AuditLog).filter(AuditLog.entity_type == ENTITY_TYPE)

            if event_id:
                query = query.filter(AuditLog.event_id == str(event_id))
            if entity_id:
                query = query.filter(AuditLog.entity_id == str(entity_id))
            if user:
                query = query.filter(AuditLog.user == user)

            query = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            query = query.offset(offset).limit(limit)

            return [log.to_dict() for log in query.all()]
        finally:
            db.close()
