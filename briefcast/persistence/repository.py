"""
Briefing repository.

Exactly one record per (user, calendar day). Every write runs in a single
transaction: it either replaces the relevant fields or leaves the prior
record untouched.
"""

import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .models import Briefing
from ..errors import PersistenceError
from ..models import AudioArtifact, BriefingRecord, ScriptDocument
from ..utils.clock import date_key as compute_date_key


logger = logging.getLogger(__name__)


class BriefingRepository:
    """Reads and idempotent writes of BriefingRecords."""

    def __init__(self, session_factory, timezone: str = "Asia/Seoul"):
        self.Session = session_factory
        self.timezone = timezone

    def today_key(self) -> str:
        return compute_date_key(self.timezone)

    def upsert_briefing(
        self,
        user_id: str,
        date_key: str,
        script: ScriptDocument,
        audio: Optional[AudioArtifact] = None,
        data_sources: Optional[dict[str, Any]] = None,
    ) -> BriefingRecord:
        """
        Create or replace the user's briefing for ``date_key``.

        Script and section data are always replaced. The audio URL is
        replaced when ``audio`` is given and kept otherwise.
        """
        def apply(row: Briefing):
            row.script = script.full_text
            row.section_data = script.to_section_data()
            row.status = "completed"
            if audio is not None:
                row.audio_url = audio.storage_url
            if data_sources is not None:
                row.data_sources = data_sources

        record = self._write(user_id, date_key, apply)
        logger.info(f"Upserted briefing for {user_id} on {date_key} ({len(script.sections)} sections)")
        return record

    def save_edit(
        self,
        user_id: str,
        date_key: str,
        script: Optional[str] = None,
        section_data: Optional[list[dict[str, Any]]] = None,
    ) -> BriefingRecord:
        """
        Apply a manual edit of the script and/or sections.

        The stored script is always the flattened form of the stored
        sections: edited sections rebuild the script, and an edited script
        is split back into sections (keeping labels when the count matches).
        """
        if script is None and section_data is None:
            raise ValueError("Nothing to save: provide script or section_data")

        edited = ScriptDocument.from_section_data(section_data) if section_data is not None else None
        if edited is not None and script is not None and script.strip() != edited.full_text:
            raise ValueError("script does not match the edited sections")

        def apply(row: Briefing):
            document = edited
            if document is None:
                labels = [entry.get("label", "") for entry in (row.section_data or [])]
                document = ScriptDocument.from_text(script, labels)
            row.section_data = document.to_section_data()
            row.script = document.full_text
            if row.id is None:
                row.status = "edited"

        record = self._write(user_id, date_key, apply)
        logger.info(f"Saved manual edit for {user_id} on {date_key}")
        return record

    def get_for_day(self, user_id: str, date_key: str) -> Optional[BriefingRecord]:
        session = self.Session()
        try:
            row = session.query(Briefing).filter_by(user_id=user_id, date_key=date_key).one_or_none()
            return BriefingRecord.model_validate(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error loading briefing for {user_id}: {e}")
            raise PersistenceError(str(e)) from e
        finally:
            session.close()

    def get_latest(self, user_id: str) -> Optional[BriefingRecord]:
        """Today's briefing, or None if none has been generated yet."""
        return self.get_for_day(user_id, self.today_key())

    def delete_all_for_user(self, user_id: str) -> int:
        session = self.Session()
        try:
            deleted = session.query(Briefing).filter_by(user_id=user_id).delete()
            session.commit()
            logger.info(f"Deleted {deleted} briefings for {user_id}")
            return deleted
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(str(e)) from e
        finally:
            session.close()

    def _write(self, user_id: str, date_key: str, apply: Callable[[Briefing], None]) -> BriefingRecord:
        # A concurrent insert for the same day loses the unique-constraint race;
        # the second attempt then finds the row and updates it.
        for attempt in (1, 2):
            session = self.Session()
            try:
                row = session.query(Briefing).filter_by(user_id=user_id, date_key=date_key).one_or_none()
                if row is None:
                    row = Briefing(user_id=user_id, date_key=date_key)
                    session.add(row)
                apply(row)
                session.commit()
                session.refresh(row)
                return BriefingRecord.model_validate(row)
            except IntegrityError as e:
                session.rollback()
                if attempt == 1:
                    logger.warning(f"Briefing insert raced for {user_id} on {date_key}, retrying as update")
                    continue
                raise PersistenceError(str(e)) from e
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Error writing briefing for {user_id}: {e}")
                raise PersistenceError(str(e)) from e
            finally:
                session.close()
        raise PersistenceError(f"Could not write briefing for {user_id} on {date_key}")
