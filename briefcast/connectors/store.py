"""SQLAlchemy-backed credential store."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..errors import PersistenceError
from ..models import Credential, Provider
from ..persistence.models import ConnectedService


logger = logging.getLogger(__name__)


class CredentialStore:
    """At most one row per (user, provider); saves update that row in place."""

    def __init__(self, session_factory):
        self.Session = session_factory

    def get(self, user_id: str, provider: Provider) -> Optional[Credential]:
        """The active credential, or None if missing or disabled."""
        session = self.Session()
        try:
            row = self._find(session, user_id, provider)
            if row is None or not row.is_active:
                return None
            return Credential(
                provider=Provider(row.provider),
                access_token=row.access_token,
                refresh_token=row.refresh_token,
                expires_at=row.expires_at,
                scopes=row.scopes or [],
            )
        finally:
            session.close()

    def save(self, user_id: str, credential: Credential) -> None:
        """Insert or replace in place, committed immediately."""
        session = self.Session()
        try:
            row = self._find(session, user_id, credential.provider)
            if row is None:
                row = ConnectedService(user_id=user_id, provider=credential.provider.value)
                session.add(row)
            row.access_token = credential.access_token
            row.refresh_token = credential.refresh_token
            row.expires_at = credential.expires_at
            row.scopes = list(credential.scopes)
            row.is_active = True
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error saving {credential.provider.value} credential for {user_id}: {e}")
            raise PersistenceError(str(e)) from e
        finally:
            session.close()

    def disable(self, user_id: str, provider: Provider) -> None:
        session = self.Session()
        try:
            row = self._find(session, user_id, provider)
            if row is not None:
                row.is_active = False
                session.commit()
                logger.warning(f"Disabled {Provider(provider).value} for {user_id} until reconnected")
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(str(e)) from e
        finally:
            session.close()

    def list_for_user(self, user_id: str) -> list[tuple[Credential, bool]]:
        """Every stored credential with its active flag."""
        session = self.Session()
        try:
            rows = session.query(ConnectedService).filter_by(user_id=user_id).all()
            return [
                (
                    Credential(
                        provider=Provider(row.provider),
                        access_token=row.access_token,
                        refresh_token=row.refresh_token,
                        expires_at=row.expires_at,
                        scopes=row.scopes or [],
                    ),
                    row.is_active,
                )
                for row in rows
            ]
        finally:
            session.close()

    @staticmethod
    def _find(session, user_id: str, provider: Provider) -> Optional[ConnectedService]:
        return (
            session.query(ConnectedService)
            .filter_by(user_id=user_id, provider=Provider(provider).value)
            .one_or_none()
        )
