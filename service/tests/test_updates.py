"""
Tests for webhook payload parsing.
"""

from datetime import datetime, timezone

from schoolbot.messenger.updates import MessengerUpdate, parse_update


def make_update(text="سلام", chat_id=1001, **message_extra):
    message = {"message_id": 5, "date": 1700000000, "chat": {"id": chat_id, "type": "private"}}
    if text is not None:
        message["text"] = text
    message.update(message_extra)
    return {"update_id": 42, "message": message}


class TestParseUpdate:

    def test_text_message(self):
        message = parse_update(make_update("  کلاس فردا تشکیل می‌شود؟  "))
        assert message.chat_id == "1001"
        assert message.text == "کلاس فردا تشکیل می‌شود؟"
        assert message.received_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_string_chat_id(self):
        assert parse_update(make_update(chat_id="abc-9")).chat_id == "abc-9"

    def test_missing_text(self):
        assert parse_update(make_update(text=None)) is None

    def test_whitespace_text(self):
        assert parse_update(make_update(text="   \n ")) is None

    def test_missing_chat(self):
        payload = {"update_id": 1, "message": {"message_id": 1, "text": "hi"}}
        assert parse_update(payload) is None

    def test_no_message(self):
        assert parse_update({"update_id": 1, "edited_message": {"text": "x"}}) is None

    def test_malformed_shapes(self):
        assert parse_update(None) is None
        assert parse_update([]) is None
        assert parse_update({"message": "not an object"}) is None
        assert parse_update({"message": {"chat": {"id": 1}, "text": 12}}) is None

    def test_missing_date_uses_now(self):
        payload = {"message": {"chat": {"id": 7}, "text": "x"}}
        message = parse_update(payload)
        assert message.received_at.tzinfo is not None

    def test_sender_alias(self):
        update = MessengerUpdate.model_validate(
            make_update(**{"from": {"id": 9, "is_bot": False, "first_name": "Ali"}})
        )
        assert update.message.from_.first_name == "Ali"

    def test_unknown_fields_ignored(self):
        payload = make_update(entities=[{"type": "bold"}])
        payload["callback_query"] = {"id": "q"}
        assert parse_update(payload).text == "سلام"
