"""
Database models for Briefcast.
SQLAlchemy declarative tables; SQLite by default, any SQLAlchemy URL works.
"""

from sqlalchemy import create_engine, Column, Integer, String, Text, Boolean, DateTime, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base, sessionmaker

from ..utils.clock import utcnow

Base = declarative_base()


class ConnectedService(Base):
    """OAuth credential for one provider of one user."""
    __tablename__ = 'connected_services'

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False)
    provider = Column(String(20), nullable=False)  # gmail, calendar, youtube, notion, slack

    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    expires_at = Column(DateTime)  # naive UTC
    scopes = Column(JSON, default=list)

    # Disabled after a failed refresh until the user reconnects
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'provider', name='uq_connected_service_user_provider'),
    )


class Briefing(Base):
    """One generated briefing per user per calendar day."""
    __tablename__ = 'briefings'

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False)
    date_key = Column(String(10), nullable=False)  # YYYY-MM-DD in the configured timezone

    script = Column(Text, nullable=False, default='')
    section_data = Column(JSON, nullable=False, default=list)  # [{label, text, offset}]
    audio_url = Column(String(1000))
    status = Column(String(20), nullable=False, default='completed')  # completed, edited
    data_sources = Column(JSON, nullable=False, default=dict)  # {provider: {status, count}}

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'date_key', name='uq_briefing_user_day'),
        Index('idx_briefing_user_updated', 'user_id', 'updated_at'),
    )


def init_db(database_url: str = 'sqlite:///briefcast.db'):
    """Create the engine and any missing tables."""
    connect_args = {}
    if database_url.startswith('sqlite'):
        connect_args['check_same_thread'] = False  # sessions are used from worker threads

    engine = create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=1800,  # Recycle connections after 30 minutes
        connect_args=connect_args,
    )
    Base.metadata.create_all(engine)
    return engine


def create_session_factory(engine):
    return sessionmaker(bind=engine)
