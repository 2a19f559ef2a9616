"""Tests for session handling and persistence around reply generation."""

from __future__ import annotations

import pytest

from support_chat.engine import NOT_CONFIGURED_MESSAGE
from support_chat.service import ChatService


async def _drain(stream) -> list[str]:
    return [fragment async for fragment in stream]


@pytest.mark.asyncio
async def test_reply_creates_session_and_records_both_turns(config, fake_client_cls):
    service = ChatService(config, client=fake_client_cls(reply="Our support hours are Mon-Fri."))

    result = await service.reply("When are you open?")

    history = service.get_history(result.session_id)
    assert result.reply == "Our support hours are Mon-Fri."
    assert [(m["sender"], m["content"]) for m in history] == [
        ("user", "When are you open?"),
        ("ai", "Our support hours are Mon-Fri."),
    ]


@pytest.mark.asyncio
async def test_unknown_session_starts_new_conversation(config, fake_client_cls):
    service = ChatService(config, client=fake_client_cls(reply="ok"))

    result = await service.reply("hello", session_id="does-not-exist")

    assert result.session_id != "does-not-exist"
    assert service.store.find_conversation(result.session_id) is not None


@pytest.mark.asyncio
async def test_prior_turns_are_sent_as_context(config, fake_client_cls):
    client = fake_client_cls(reply="answer")
    service = ChatService(config, client=client)

    first = await service.reply("Do you ship to Canada?")
    await service.reply("How much?", session_id=first.session_id)

    messages = client.calls[-1]["messages"]
    assert messages[1:] == [
        {"role": "user", "content": "Do you ship to Canada?"},
        {"role": "assistant", "content": "answer"},
        {"role": "user", "content": "How much?"},
    ]


@pytest.mark.asyncio
async def test_context_is_limited_to_recent_history(config, fake_client_cls):
    client = fake_client_cls(reply="answer")
    service = ChatService(config, client=client)
    session_id = service.resolve_session(None).id
    for i in range(12):
        service.store.create_message(session_id, "user" if i % 2 == 0 else "ai", f"old-{i}")

    await service.reply("latest", session_id=session_id)

    messages = client.calls[-1]["messages"]
    # system prompt + 9 prior turns + the new message
    assert len(messages) == 11
    assert messages[1]["content"] == "old-3"
    assert messages[-2]["content"] == "old-11"


@pytest.mark.asyncio
async def test_long_message_is_truncated_with_note(config, fake_client_cls):
    client = fake_client_cls(reply="Got it.")
    service = ChatService(config, client=client)
    message = "x" * 2500

    result = await service.reply(message)

    assert client.calls[0]["messages"][-1]["content"] == "x" * 2000
    assert result.reply.startswith("Got it.\n\nNote: Your message was very long")
    assert "first 2000 characters" in result.reply
    assert service.get_history(result.session_id)[0]["content"] == message


@pytest.mark.asyncio
async def test_blank_message_is_rejected(config, fake_client_cls):
    service = ChatService(config, client=fake_client_cls())
    with pytest.raises(ValueError, match="Message cannot be empty"):
        await service.reply("   ")


@pytest.mark.asyncio
async def test_stream_chat_records_reply_after_completion(config, fake_client_cls):
    service = ChatService(config, client=fake_client_cls(tokens=["Returns ", "within ", "30 days."]))

    session_id, stream = service.stream_chat("Can I return this?")
    assert len(service.get_history(session_id)) == 1

    fragments = await _drain(stream)

    assert "".join(fragments) == "Returns within 30 days."
    last = service.get_history(session_id)[-1]
    assert last["sender"] == "ai"
    assert last["content"] == "Returns within 30 days."


@pytest.mark.asyncio
async def test_stream_chat_appends_truncation_note(config, fake_client_cls):
    service = ChatService(config, client=fake_client_cls(tokens=["ok"]))

    session_id, stream = service.stream_chat("y" * 2001)
    fragments = await _drain(stream)

    assert fragments[0] == "ok"
    assert fragments[-1].startswith("\n\nNote: Your message was very long")


@pytest.mark.asyncio
async def test_stream_and_reply_share_cache(config, fake_client_cls):
    client = fake_client_cls(reply="unused", tokens=["Cached ", "answer"])
    service = ChatService(config, client=client)

    _, stream = service.stream_chat("Shipping?")
    await _drain(stream)
    result = await service.reply("Shipping?")

    assert result.reply == "Cached answer"
    assert [call["kind"] for call in client.calls] == ["stream"]


@pytest.mark.asyncio
async def test_unconfigured_service_still_records_reply(unconfigured, fake_client_cls):
    client = fake_client_cls(reply="unused")
    service = ChatService(unconfigured, client=client)

    result = await service.reply("hi")

    assert result.reply == NOT_CONFIGURED_MESSAGE
    assert client.calls == []
    assert len(service.cache) == 0


def test_health_reports_key_presence(config, unconfigured):
    assert ChatService(config).health() == {"ok": True, "db": True, "openaiKey": True}
    assert ChatService(unconfigured).health()["openaiKey"] is False
