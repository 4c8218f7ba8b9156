"""Tests for the Deepgram recognizer client."""

import json

import pytest
from websockets.exceptions import ConnectionClosedError

from call_relay.core.models import RecognizerError
from call_relay.recognizer import deepgram
from call_relay.recognizer.deepgram import (
    CLOSE_STREAM,
    DeepgramClient,
    DeepgramStream,
    build_listen_url,
    parse_result,
)


def _results(transcript, is_final=True, confidence=0.9):
    return json.dumps({
        "type": "Results",
        "is_final": is_final,
        "channel": {"alternatives": [
            {"transcript": transcript, "confidence": confidence},
            {"transcript": "alternative", "confidence": 0.1},
        ]},
    })


class FakeWebSocket:
    """Minimal client connection: replays messages, records sends."""

    def __init__(self, messages=(), error=None):
        self._messages = list(messages)
        self._error = error
        self.sent = []
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._messages:
            yield message
        if self._error is not None:
            raise self._error

    async def send(self, data):
        if self.closed:
            raise ConnectionClosedError(None, None)
        self.sent.append(data)

    async def close(self):
        self.closed = True


class TestParseResult:
    """Test recognizer message parsing."""

    def test_final_result(self):
        event = parse_result(_results("hello there", is_final=True, confidence=0.87))

        assert event.result_type == "Results"
        assert event.is_final is True
        assert event.transcript == "hello there"
        assert event.confidence == pytest.approx(0.87)

    def test_interim_result(self):
        event = parse_result(_results("hel", is_final=False))
        assert event.is_final is False

    def test_other_message_types_skipped(self):
        assert parse_result(json.dumps({"type": "Metadata", "request_id": "x"})) is None
        assert parse_result(json.dumps({"type": "SpeechStarted"})) is None

    def test_no_alternatives(self):
        message = json.dumps({"type": "Results", "channel": {"alternatives": []}})
        assert parse_result(message) is None

    def test_missing_confidence(self):
        message = json.dumps({
            "type": "Results",
            "is_final": True,
            "channel": {"alternatives": [{"transcript": "ok"}]},
        })
        event = parse_result(message)

        assert event.transcript == "ok"
        assert event.confidence is None

    def test_invalid_json(self):
        with pytest.raises(RecognizerError):
            parse_result("{oops")

    def test_non_object(self):
        with pytest.raises(RecognizerError):
            parse_result('"Results"')


class TestListenUrl:
    """Test listen URL construction."""

    def test_query_appended(self):
        url = build_listen_url(
            "wss://api.deepgram.com/v1/listen",
            {"encoding": "mulaw", "sample_rate": "8000"},
        )
        assert url == "wss://api.deepgram.com/v1/listen?encoding=mulaw&sample_rate=8000"

    def test_existing_query_kept(self):
        url = build_listen_url("wss://example.test/listen?tier=1", {"model": "nova-2"})
        assert url == "wss://example.test/listen?tier=1&model=nova-2"


class TestDeepgramStream:
    """Test the live stream wrapper."""

    @pytest.mark.asyncio
    async def test_send_audio(self):
        ws = FakeWebSocket()
        stream = DeepgramStream(ws, "CALLER:CA1")

        await stream.send_audio(b"\x01\x02")

        assert ws.sent == [b"\x01\x02"]

    @pytest.mark.asyncio
    async def test_send_after_remote_close(self):
        ws = FakeWebSocket()
        ws.closed = True
        stream = DeepgramStream(ws, "CALLER:CA1")

        with pytest.raises(RecognizerError):
            await stream.send_audio(b"\x01")

    @pytest.mark.asyncio
    async def test_events_skip_noise(self):
        ws = FakeWebSocket([
            json.dumps({"type": "Metadata"}),
            b"\x00binary",
            "{garbage",
            _results("first"),
            _results("second", is_final=False),
        ])
        stream = DeepgramStream(ws, "CALLER:CA1")

        events = [event async for event in stream.events()]

        assert [e.transcript for e in events] == ["first", "second"]
        assert [e.is_final for e in events] == [True, False]

    @pytest.mark.asyncio
    async def test_events_abnormal_close(self):
        ws = FakeWebSocket([_results("first")], error=ConnectionClosedError(None, None))
        stream = DeepgramStream(ws, "CALLER:CA1")
        received = []

        with pytest.raises(RecognizerError):
            async for event in stream.events():
                received.append(event.transcript)

        assert received == ["first"]

    @pytest.mark.asyncio
    async def test_close_sends_close_stream_once(self):
        ws = FakeWebSocket()
        stream = DeepgramStream(ws, "CALLER:CA1")

        await stream.close()
        await stream.close()

        assert ws.sent == [CLOSE_STREAM]
        assert ws.closed is True


class TestDeepgramClient:
    """Test connection setup."""

    def test_from_config(self):
        from call_relay.config import RelayConfig

        config = RelayConfig(deepgram_api_key="dg-key")
        client = DeepgramClient.from_config(config)

        assert client.api_key == "dg-key"
        assert client.url.startswith(config.deepgram_url + "?")
        assert "encoding=mulaw" in client.url

    @pytest.mark.asyncio
    async def test_connect_sends_token(self, monkeypatch):
        calls = {}
        ws = FakeWebSocket()

        async def fake_connect(url, **kwargs):
            calls["url"] = url
            calls.update(kwargs)
            return ws

        monkeypatch.setattr(deepgram.websockets, "connect", fake_connect)
        client = DeepgramClient("dg-key", params={"model": "nova-2"})

        stream = await client.connect("CALLER:CA1")

        assert isinstance(stream, DeepgramStream)
        assert calls["url"] == "wss://api.deepgram.com/v1/listen?model=nova-2"
        assert calls["additional_headers"] == {"Authorization": "Token dg-key"}

    @pytest.mark.asyncio
    async def test_connect_failure(self, monkeypatch):
        async def refuse(url, **kwargs):
            raise OSError("connection refused")

        monkeypatch.setattr(deepgram.websockets, "connect", refuse)
        client = DeepgramClient("dg-key")

        with pytest.raises(RecognizerError):
            await client.connect("CALLEE:CA1")
