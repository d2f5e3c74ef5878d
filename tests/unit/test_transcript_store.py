"""Unit tests for TranscriptStore."""

import os
from datetime import date
from pathlib import Path

import pytest

from livescribe.storage.transcript_store import TranscriptStore


@pytest.mark.unit
class TestTranscriptStore:

    def test_initialization_creates_directory(self, temp_data_dir):
        store = TranscriptStore(temp_data_dir)
        assert store.transcripts_dir == Path(temp_data_dir) / "transcripts"
        assert store.transcripts_dir.is_dir()

    def test_save_writes_dated_file(self, temp_data_dir):
        store = TranscriptStore(temp_data_dir)
        path = store.save("hello world", day=date(2024, 3, 9))
        assert Path(path).name == "transcription-2024-03-09.txt"
        assert Path(path).read_text(encoding="utf-8") == "hello world"

    def test_save_does_not_overwrite(self, temp_data_dir):
        store = TranscriptStore(temp_data_dir)
        day = date(2024, 3, 9)
        first = store.save("one", day=day)
        second = store.save("two", day=day)
        third = store.save("three", day=day)
        assert [Path(p).name for p in (first, second, third)] == [
            "transcription-2024-03-09.txt",
            "transcription-2024-03-09-1.txt",
            "transcription-2024-03-09-2.txt",
        ]
        assert Path(first).read_text(encoding="utf-8") == "one"

    def test_save_defaults_to_today(self, temp_data_dir):
        path = TranscriptStore(temp_data_dir).save("text")
        assert date.today().isoformat() in Path(path).name

    @pytest.mark.parametrize("text", ["", "   ", "\n\n"])
    def test_blank_transcript_rejected(self, temp_data_dir, text):
        store = TranscriptStore(temp_data_dir)
        with pytest.raises(ValueError):
            store.save(text)
        assert store.list_transcripts() == []

    def test_unicode_round_trip(self, temp_data_dir):
        path = TranscriptStore(temp_data_dir).save("naïve café\nzweite Zeile")
        assert Path(path).read_text(encoding="utf-8") == "naïve café\nzweite Zeile"

    def test_list_transcripts_newest_first(self, temp_data_dir):
        store = TranscriptStore(temp_data_dir)
        older = store.save("old", day=date(2024, 1, 1))
        newer = store.save("new", day=date(2024, 1, 2))
        os.utime(older, (1_000_000, 1_000_000))
        os.utime(newer, (2_000_000, 2_000_000))
        assert store.list_transcripts() == [newer, older]

    def test_list_ignores_other_files(self, temp_data_dir):
        store = TranscriptStore(temp_data_dir)
        (store.transcripts_dir / "notes.md").write_text("x")
        assert store.list_transcripts() == []
