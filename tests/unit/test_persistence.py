"""
Unit tests for the briefing repository.
"""

import pytest


@pytest.mark.unit
class TestBriefingRepository:
    """Tests for BriefingRepository."""

    def _audio(self, url):
        from briefcast.models import AudioArtifact

        return AudioArtifact(mime_type="audio/wav", byte_length=10, storage_url=url)

    def test_upsert_creates_record(self, repository, sample_script):
        """First write for a day inserts a record."""
        record = repository.upsert_briefing(
            "user-1", "2025-03-02", sample_script, self._audio("https://a"), {"gmail": {"status": "ok", "count": 2}},
        )

        assert record.id is not None
        assert record.script == sample_script.full_text
        assert [s["label"] for s in record.section_data] == ["opening", "schedule", "closing"]
        assert record.audio_url == "https://a"
        assert record.data_sources["gmail"]["count"] == 2

    def test_second_upsert_same_day_replaces(self, repository, sample_script):
        """Two writes on one day leave one record with the newer fields."""
        from briefcast.models import ScriptDocument, ScriptSection

        first = repository.upsert_briefing("user-1", "2025-03-02", sample_script, self._audio("https://a"))
        newer = ScriptDocument(sections=(ScriptSection(label="opening", text="Host: New day."),))
        second = repository.upsert_briefing("user-1", "2025-03-02", newer, self._audio("https://b"))

        assert second.id == first.id
        assert second.script == "Host: New day."
        assert second.audio_url == "https://b"
        assert repository.get_for_day("user-1", "2025-03-02").audio_url == "https://b"

    def test_upsert_without_audio_keeps_url(self, repository, sample_script):
        repository.upsert_briefing("user-1", "2025-03-02", sample_script, self._audio("https://a"))
        record = repository.upsert_briefing("user-1", "2025-03-02", sample_script)

        assert record.audio_url == "https://a"

    def test_days_and_users_are_separate(self, repository, sample_script):
        repository.upsert_briefing("user-1", "2025-03-01", sample_script)
        repository.upsert_briefing("user-1", "2025-03-02", sample_script)
        repository.upsert_briefing("user-2", "2025-03-02", sample_script)

        assert repository.delete_all_for_user("user-1") == 2
        assert repository.get_for_day("user-2", "2025-03-02") is not None

    def test_get_latest_uses_today(self, repository, sample_script):
        """Latest is today's record in the configured timezone."""
        assert repository.get_latest("user-1") is None

        repository.upsert_briefing("user-1", repository.today_key(), sample_script)
        assert repository.get_latest("user-1").date_key == repository.today_key()

    def test_save_edit_sections(self, repository, sample_script):
        """Editing sections rebuilds script text and offsets."""
        repository.upsert_briefing("user-1", "2025-03-02", sample_script, self._audio("https://a"))

        record = repository.save_edit(
            "user-1", "2025-03-02",
            section_data=[{"label": "opening", "text": "Host: Hi."}, {"label": "mail", "text": "Host: Mail."}],
        )

        assert record.script == "Host: Hi.\n\nHost: Mail."
        assert record.section_data[1]["offset"] == len("Host: Hi.\n\n")
        assert record.audio_url == "https://a"
        assert record.status == "completed"

    def test_save_edit_creates_edited_record(self, repository):
        record = repository.save_edit("user-1", "2025-03-02", script="Host: Draft.")

        assert record.status == "edited"
        assert record.script == "Host: Draft."

    def test_save_edit_script_keeps_sections_in_step(self, repository, sample_script):
        """An edited script is split back into sections, keeping labels when the count matches."""
        repository.upsert_briefing("user-1", "2025-03-02", sample_script, self._audio("https://a"))
        edited = "Host: Good morning, Sam!\n\nHost: Standup moved to eleven.\nGuest: Noted.\n\nHost: That's all."

        record = repository.save_edit("user-1", "2025-03-02", script=edited)

        assert record.script == edited
        assert [s["label"] for s in record.section_data] == ["opening", "schedule", "closing"]
        assert record.section_data[1]["text"] == "Host: Standup moved to eleven.\nGuest: Noted."
        assert record.section_data[2]["offset"] == edited.index("Host: That's all.")

    def test_save_edit_script_with_new_section_count(self, repository, sample_script):
        """When the paragraph count changes the old labels no longer apply."""
        repository.upsert_briefing("user-1", "2025-03-02", sample_script, self._audio("https://a"))

        record = repository.save_edit("user-1", "2025-03-02", script="Host: Short version.\n\nHost: Bye.")

        assert [s["label"] for s in record.section_data] == ["section-1", "section-2"]
        assert "".join(s["text"] for s in record.section_data) == "Host: Short version.Host: Bye."

    def test_save_edit_rejects_script_disagreeing_with_sections(self, repository, sample_script):
        repository.upsert_briefing("user-1", "2025-03-02", sample_script, self._audio("https://a"))

        with pytest.raises(ValueError):
            repository.save_edit(
                "user-1", "2025-03-02",
                script="Host: Something else.",
                section_data=[{"label": "opening", "text": "Host: Hi."}],
            )
        assert repository.get_for_day("user-1", "2025-03-02").script == sample_script.full_text

    def test_save_edit_requires_content(self, repository):
        with pytest.raises(ValueError):
            repository.save_edit("user-1", "2025-03-02")
