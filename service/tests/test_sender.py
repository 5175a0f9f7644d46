"""
Tests for buffering, chunking and delivering AI replies.
"""

import asyncio

from schoolbot.messenger.sender import (
    EMPTY_REPLY_MESSAGE,
    SEND_FAILED_MESSAGE,
    collect_stream,
    send_ai_response,
    send_text,
    send_typing_indicator,
)
from schoolbot.services.assistant_proxy import text_stream


async def byte_stream(chunks):
    for chunk in chunks:
        yield chunk


async def broken_stream(first):
    yield first
    raise ConnectionResetError("stream dropped")


class TestCollectStream:

    def test_multibyte_split_across_chunks(self):
        data = "سلام دنیا".encode("utf-8")
        chunks = [data[:3], data[3:7], data[7:]]
        assert asyncio.run(collect_stream(byte_stream(chunks))) == "سلام دنیا"


class TestSendAiResponse:

    def test_formats_and_sends_single_message(self, bot_api):
        stream = text_stream("## برنامه\n\n| روز | درس |\n|---|---|\n| شنبه | ریاضی |")
        asyncio.run(send_ai_response(bot_api, "tok", "1001", stream, chunk_delay=0))

        assert [m["text"] for m in bot_api.messages] == ["🔹 برنامه\n\n• شنبه: ریاضی"]
        assert bot_api.messages[0]["token"] == "tok"
        assert bot_api.messages[0]["chat_id"] == "1001"

    def test_long_reply_sent_in_order(self, bot_api):
        lines = [f"خط شماره {i}" for i in range(40)]
        stream = text_stream("\n".join(lines))
        asyncio.run(send_ai_response(bot_api, "tok", "1001", stream, max_length=60, chunk_delay=0))

        sent = [m["text"] for m in bot_api.messages]
        assert len(sent) > 1
        assert all(len(text) <= 60 for text in sent)
        assert " ".join(sent).split() == " ".join(lines).split()

    def test_empty_reply_gets_notice(self, bot_api):
        asyncio.run(send_ai_response(bot_api, "tok", "1001", text_stream("  \n "), chunk_delay=0))
        assert [m["text"] for m in bot_api.messages] == [EMPTY_REPLY_MESSAGE]

    def test_broken_stream_sends_error_message(self, bot_api):
        asyncio.run(send_ai_response(bot_api, "tok", "1001", broken_stream(b"partial"), chunk_delay=0))
        assert [m["text"] for m in bot_api.messages] == [SEND_FAILED_MESSAGE]


class TestSendText:

    def test_partial_failure_keeps_going(self, bot_api):
        bot_api.fail_chunks = {1}
        text = " ".join(["واژه"] * 60)
        delivered = asyncio.run(send_text(bot_api, "tok", "1001", text, max_length=50, chunk_delay=0))

        assert len(bot_api.messages) > 2
        assert delivered == len(bot_api.messages) - 1

    def test_plain_text_passes_through(self, bot_api):
        delivered = asyncio.run(send_text(bot_api, "tok", "1001", "سلام", chunk_delay=0))
        assert delivered == 1
        assert bot_api.messages[0]["text"] == "سلام"


class TestTypingIndicator:

    def test_failure_is_swallowed(self, bot_api):
        bot_api.fail_actions = True
        asyncio.run(send_typing_indicator(bot_api, "tok", "1001"))
        assert bot_api.actions == [{"token": "tok", "chat_id": "1001", "action": "typing"}]
