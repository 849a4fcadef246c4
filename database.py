"""Database setup and models for the placement history.

This module provides the database connection, models, and utilities
for recording placement actions using SQLAlchemy (SQLite by default).
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine, Column, Integer, String, Text, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker

from logic.config import load_config

# Database setup
DATABASE_URL = load_config()["database_url"]
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """Audit log model for tracking placement actions on clubs.

    Attributes:
        id: Primary key auto-incrementing ID.
        timestamp: When the action occurred.
        user: Identifier of the user who triggered the action.
        event_id: Event the club belongs to.
        entity_type: Type of entity (always "club" for now).
        entity_id: ID of the club.
        action: Type of action (place, place_failed, unplace).
        before_value: Previous position (JSON string).
        after_value: New position (JSON string).
        description: Human-readable description of the action.
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    timestamp = Column(DateTime, default=_utcnow, nullable=False, index=True)
    user = Column(String(100), nullable=False, index=True)
    event_id = Column(String(100), nullable=True, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(100), nullable=True, index=True)
    action = Column(String(50), nullable=False)
    before_value = Column(Text, nullable=True)
    after_value = Column(Text, nullable=True)
    description = Column(Text, nullable=True)

    def to_dict(self):
        """Convert audit log entry to dictionary.

        Returns:
            Dictionary representation of the audit log entry.
        """
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "user": self.user,
            "event_id": self.event_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "before_value": self.before_value,
            "after_value": self.after_value,
            "description": self.description,
        }


def init_db():
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=engine)
