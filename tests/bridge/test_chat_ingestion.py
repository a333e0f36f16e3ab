"""Tests for the chat ingestion loop."""

import pytest
from sqlalchemy.orm import Session

from services.bridge.app.models.identity_mappings import IdentityMapping
from services.bridge.app.models.update_offsets import UpdateOffset
from services.bridge.app.schemas.telegram import TelegramUpdate
from services.bridge.app.services.chat_ingestion import ingest_updates, parse_bind_command
from services.bridge.app.services.cursor import UpdateCursorTracker
from services.bridge.app.services.identity_store import IdentityMappingStore


def _update(update_id, text=None, username="bob", chat_id=42, first_name="Bob", last_name=None):
    payload = {"update_id": update_id}
    if text is not None:
        payload["message"] = {
            "message_id": update_id * 10,
            "from": {"id": 1000 + chat_id, "username": username, "first_name": first_name, "last_name": last_name},
            "chat": {"id": chat_id, "username": username},
            "text": text,
        }
    return TelegramUpdate.model_validate(payload)


class TestParseBindCommand:
    """Tests for parse_bind_command."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("/gitlabusername alice", "alice"),
            ("/gitlabusername alice_2", "alice_2"),
            ("/gitlabusername 42", "42"),
        ],
    )
    def test_matches(self, text, expected):
        """Test well-formed bind commands."""
        assert parse_bind_command(text) == expected

    @pytest.mark.parametrize(
        "text",
        [
            None,
            "",
            "hello",
            "/gitlabusername",
            "/gitlabusername ",
            "/gitlabusername  alice",
            "/gitlabusername alice bob",
            "/gitlabusername alice.smith",
            "/gitlabusername alice\n",
            " /gitlabusername alice",
            "/GITLABUSERNAME alice",
            "/gitlabusername ålice",
        ],
    )
    def test_rejects_malformed(self, text):
        """Test that near-misses are ignored rather than partially parsed."""
        assert parse_bind_command(text) is None


class TestIngestUpdates:
    """Tests for ingest_updates."""

    def test_first_run_creates_mapping_and_cursor(self, db_session: Session, mock_telegram):
        """Test the bob -> alice scenario with no prior cursor."""
        mock_telegram.get_updates.return_value = [_update(5, "/gitlabusername alice")]

        result = ingest_updates(db_session, mock_telegram)

        mock_telegram.get_updates.assert_called_once_with(None)
        mapping = IdentityMappingStore(db_session).find_by_telegram_username("bob")
        assert mapping.gitlab_username == "alice"
        assert mapping.telegram_chat_id == 42
        assert mapping.telegram_first_name == "Bob"
        assert UpdateCursorTracker(db_session).current_offset() == 6
        assert result.updates == 1
        assert result.mappings == 1
        assert result.offset == 6

    def test_polls_from_stored_cursor(self, db_session: Session, mock_telegram):
        """Test that the stored cursor is passed as the offset."""
        db_session.add(UpdateOffset(update_id=17))
        db_session.commit()

        ingest_updates(db_session, mock_telegram)

        mock_telegram.get_updates.assert_called_once_with(17)

    def test_empty_batch_is_noop(self, db_session: Session, mock_telegram):
        """Test that an empty batch changes neither cursor nor mappings."""
        db_session.add(UpdateOffset(update_id=17))
        db_session.commit()
        mock_telegram.get_updates.return_value = []

        result = ingest_updates(db_session, mock_telegram)

        assert result.updates == 0
        assert result.offset == 17
        assert db_session.query(UpdateOffset).count() == 1
        assert db_session.query(IdentityMapping).count() == 0

    def test_cursor_is_max_id_plus_one(self, db_session: Session, mock_telegram):
        """Test that the cursor follows the highest id regardless of order."""
        mock_telegram.get_updates.return_value = [
            _update(12, "hi"),
            _update(30, "what"),
            _update(21, "/gitlabusername carol", username="dana", chat_id=7),
        ]

        ingest_updates(db_session, mock_telegram)

        assert UpdateCursorTracker(db_session).current_offset() == 31

    def test_non_command_batch_still_advances(self, db_session: Session, mock_telegram):
        """Test that unrelated chatter advances the cursor without mappings."""
        mock_telegram.get_updates.return_value = [_update(3, "good morning"), _update(4)]

        result = ingest_updates(db_session, mock_telegram)

        assert result.mappings == 0
        assert db_session.query(IdentityMapping).count() == 0
        assert UpdateCursorTracker(db_session).current_offset() == 5

    def test_updates_without_message_or_text_are_skipped(self, db_session: Session, mock_telegram):
        """Test that malformed updates are filtered before matching."""
        no_text = TelegramUpdate.model_validate(
            {"update_id": 9, "message": {"chat": {"id": 1}, "from": {"username": "x"}}}
        )
        mock_telegram.get_updates.return_value = [_update(8), no_text]

        result = ingest_updates(db_session, mock_telegram)

        assert result.mappings == 0
        assert UpdateCursorTracker(db_session).current_offset() == 10

    def test_sender_without_username_is_skipped(self, db_session: Session, mock_telegram):
        """Test that a bind command from a user with no Telegram username is ignored."""
        mock_telegram.get_updates.return_value = [_update(1, "/gitlabusername alice", username=None)]

        result = ingest_updates(db_session, mock_telegram)

        assert result.mappings == 0
        assert db_session.query(IdentityMapping).count() == 0
        assert UpdateCursorTracker(db_session).current_offset() == 2

    def test_last_claim_in_batch_wins(self, db_session: Session, mock_telegram):
        """Test the replace invariant across one batch."""
        mock_telegram.get_updates.return_value = [
            _update(1, "/gitlabusername alice"),
            _update(2, "/gitlabusername carol"),
            _update(3, "/gitlabusername erin"),
        ]

        result = ingest_updates(db_session, mock_telegram)

        rows = db_session.query(IdentityMapping).all()
        assert result.mappings == 3
        assert len(rows) == 1
        assert rows[0].gitlab_username == "erin"

    def test_reprocessing_same_batch_is_harmless(self, db_session: Session, mock_telegram):
        """Test at-least-once delivery: the same update twice leaves one mapping."""
        mock_telegram.get_updates.return_value = [_update(5, "/gitlabusername alice")]

        ingest_updates(db_session, mock_telegram)
        ingest_updates(db_session, mock_telegram)

        assert db_session.query(IdentityMapping).count() == 1
        assert UpdateCursorTracker(db_session).current_offset() == 6

    def test_fetch_failure_leaves_state_untouched(self, db_session: Session, mock_telegram):
        """Test that a failed poll propagates and does not advance the cursor."""
        from services.bridge.app.errors import RemoteUnavailable

        mock_telegram.get_updates.side_effect = RemoteUnavailable("telegram", "boom")

        with pytest.raises(RemoteUnavailable):
            ingest_updates(db_session, mock_telegram)

        assert UpdateCursorTracker(db_session).current_offset() is None
