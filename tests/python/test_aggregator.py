"""Tests for speaker-change turn aggregation."""

import asyncio

import pytest

from call_relay.core.aggregator import TurnAggregator
from call_relay.core.models import EVENT_INTERIM, EVENT_TURN


class Recorder:
    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if e.type == event_type]


class TestTurnAggregation:
    """Test turn boundaries."""

    @pytest.mark.asyncio
    async def test_same_speaker_coalesces(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        await agg.absorb("caller", "Hello", True)
        await agg.absorb("caller", "how are you", True)

        assert sink.of_type(EVENT_TURN) == []
        assert agg.buffer == "Hello how are you "

    @pytest.mark.asyncio
    async def test_speaker_change_emits_previous_turn(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        await agg.absorb("caller", "Hello", True)
        await agg.absorb("caller", "anyone there", True)
        completed = await agg.absorb("callee", "Yes hi", True)

        turns = sink.of_type(EVENT_TURN)
        assert len(turns) == 1
        assert turns[0] is completed
        assert turns[0].speaker == "caller"
        assert turns[0].text == "Hello anyone there"
        assert agg.current_speaker == "callee"
        assert agg.buffer == "Yes hi "

    @pytest.mark.asyncio
    async def test_two_speakers_two_turns(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        await agg.absorb("A", "hi", True)
        await agg.absorb("A", "there", True)
        await agg.absorb("B", "yo", True)
        await agg.flush()

        turns = [(t.speaker, t.text) for t in sink.of_type(EVENT_TURN)]
        assert turns == [("A", "hi there"), ("B", "yo")]

    @pytest.mark.asyncio
    async def test_first_final_opens_turn_without_emitting(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        assert await agg.absorb("callee", "Good morning", True) is None
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_flush_emits_remaining_turn(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)
        await agg.absorb("caller", "Bye then", True)

        turn = await agg.flush()

        assert turn.speaker == "caller"
        assert turn.text == "Bye then"
        assert sink.of_type(EVENT_TURN) == [turn]
        assert agg.buffer == ""
        assert agg.current_speaker is None

    @pytest.mark.asyncio
    async def test_flush_is_idempotent(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)
        await agg.absorb("caller", "Bye", True)

        await agg.flush()
        await agg.flush()

        assert len(sink.of_type(EVENT_TURN)) == 1
        assert agg.flushed

    @pytest.mark.asyncio
    async def test_flush_empty_buffer(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        assert await agg.flush() is None
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_fragments_after_flush_discarded(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)
        await agg.flush()

        await agg.absorb("caller", "late words", True)
        await agg.absorb("caller", "late", False)

        assert sink.events == []


class TestInterimResults:
    """Interim results pass through without touching the turn."""

    @pytest.mark.asyncio
    async def test_interim_forwarded(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        await agg.absorb("caller", "  hel ", False, 0.4)

        interim = sink.of_type(EVENT_INTERIM)
        assert len(interim) == 1
        assert interim[0].text == "hel"
        assert interim[0].speaker == "caller"
        assert agg.buffer == ""
        assert agg.current_speaker is None

    @pytest.mark.asyncio
    async def test_interim_from_other_speaker_does_not_split(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        await agg.absorb("caller", "I was saying", True)
        await agg.absorb("callee", "mm", False)
        await agg.absorb("caller", "that it works", True)

        assert sink.of_type(EVENT_TURN) == []
        assert agg.buffer == "I was saying that it works "

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    async def test_blank_text_ignored(self, text):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        await agg.absorb("caller", "hello", True)
        await agg.absorb("callee", text, True)
        await agg.absorb("callee", text, False)

        assert sink.events == []
        assert agg.current_speaker == "caller"


class TestConfidence:
    """Turn confidence is the mean of its finals."""

    @pytest.mark.asyncio
    async def test_mean_confidence(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        await agg.absorb("caller", "one", True, 0.8)
        await agg.absorb("caller", "two", True, 0.6)
        turn = await agg.absorb("callee", "three", True, 0.99)

        assert turn.confidence == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_no_confidence(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        await agg.absorb("caller", "one", True)
        turn = await agg.flush()

        assert turn.confidence is None
        assert "confidence" not in turn.to_dict()


class TestConcurrentTracks:
    """Both tracks feed one aggregator."""

    @pytest.mark.asyncio
    async def test_concurrent_absorb_keeps_all_words(self):
        sink = Recorder()
        agg = TurnAggregator("CA1", sink)

        async def speak(speaker, words):
            for word in words:
                await agg.absorb(speaker, word, True)
                await asyncio.sleep(0)

        caller_words = [f"c{i}" for i in range(20)]
        callee_words = [f"e{i}" for i in range(20)]
        await asyncio.gather(speak("caller", caller_words), speak("callee", callee_words))
        await agg.flush()

        turns = sink.of_type(EVENT_TURN)
        spoken = " ".join(t.text for t in turns).split()
        assert sorted(spoken) == sorted(caller_words + callee_words)
        for earlier, later in zip(turns, turns[1:]):
            assert earlier.speaker != later.speaker
        assert agg.turn_count == len(turns)
