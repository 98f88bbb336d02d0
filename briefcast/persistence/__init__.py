"""Durable storage for briefings and connected-service credentials."""

from .models import Base, Briefing, ConnectedService, init_db, create_session_factory
from .repository import BriefingRepository

__all__ = [
    "Base",
    "Briefing",
    "ConnectedService",
    "init_db",
    "create_session_factory",
    "BriefingRepository",
]
