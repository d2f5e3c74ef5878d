"""Unit tests for TranscriptAggregator."""

import pytest
from pubsub import pub

from livescribe.models.events import TranscriptEvent, TOPIC_TRANSCRIPT_UPDATED
from livescribe.transcription.aggregator import TranscriptAggregator


@pytest.fixture
def aggregator():
    return TranscriptAggregator()


@pytest.mark.unit
class TestTranscriptAggregator:

    def test_starts_empty(self, aggregator):
        assert aggregator.text == ""
        assert aggregator.partial == ""
        assert aggregator.segments == []
        assert aggregator.snapshot().is_empty

    def test_partial_last_write_wins(self, aggregator):
        aggregator.on_partial("ab")
        aggregator.on_partial("abc")
        assert aggregator.partial == "abc"
        assert aggregator.segments == []

    def test_finals_are_joined_with_newlines(self, aggregator):
        for text in ("one", "two", "three"):
            aggregator.on_partial(text[:2])
            aggregator.on_final(text)
        assert aggregator.text == "one\ntwo\nthree"
        assert aggregator.partial == ""

    def test_final_clears_partial(self, aggregator):
        aggregator.on_partial("hello wor")
        aggregator.on_final("hello world")
        assert aggregator.partial == ""
        assert aggregator.segments == ["hello world"]

    def test_display_text_puts_partial_on_own_line(self, aggregator):
        aggregator.on_final("first")
        aggregator.on_partial("sec")
        assert aggregator.display_text == "first\nsec"
        assert aggregator.text == "first"

    def test_on_event_dispatches(self, aggregator):
        aggregator.on_event(TranscriptEvent.partial("hel"))
        aggregator.on_event(TranscriptEvent.partial("hello"))
        aggregator.on_event(TranscriptEvent.final("hello world"))
        assert aggregator.text == "hello world"
        assert aggregator.partial == ""

    def test_reset_clears_everything(self, aggregator):
        aggregator.on_final("a")
        aggregator.on_final("b")
        aggregator.on_partial("c")
        aggregator.reset()
        assert aggregator.text == ""
        assert aggregator.partial == ""
        assert aggregator.snapshot().is_empty

    def test_segments_returns_copy(self, aggregator):
        aggregator.on_final("a")
        aggregator.segments.append("b")
        assert aggregator.segments == ["a"]

    def test_empty_final_is_kept_as_segment(self, aggregator):
        aggregator.on_final("a")
        aggregator.on_final("")
        assert aggregator.text == "a\n"


@pytest.mark.unit
class TestTranscriptPublishing:

    def test_every_mutation_publishes_snapshot(self, aggregator):
        received = []

        def listener(snapshot):
            received.append(snapshot)

        pub.subscribe(listener, TOPIC_TRANSCRIPT_UPDATED)
        aggregator.on_partial("hel")
        aggregator.on_final("hello")
        aggregator.reset()

        assert [s.partial for s in received] == ["hel", "", ""]
        assert [s.segments for s in received] == [(), ("hello",), ()]

    def test_publishing_disabled(self):
        received = []

        def listener(snapshot):
            received.append(snapshot)

        pub.subscribe(listener, TOPIC_TRANSCRIPT_UPDATED)
        TranscriptAggregator(topic=None).on_final("quiet")
        assert received == []

    def test_listener_can_read_aggregator(self, aggregator):
        seen = []

        def listener(snapshot):
            seen.append(aggregator.text)

        pub.subscribe(listener, TOPIC_TRANSCRIPT_UPDATED)
        aggregator.on_final("done")
        assert seen == ["done"]
