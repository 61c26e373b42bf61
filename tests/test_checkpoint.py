import json
import os

import pytest

from harvester.adapters.base import Record
from harvester.errors import CheckpointReadFailure, CheckpointWriteFailure
from harvester.utils import checkpoint
from harvester.utils.checkpoint import CheckpointWriter


def _records(*keys):
    return [Record(identity_key=k, fields={"author": f"author {k}", "rating": None}) for k in keys]


def test_threshold_is_reached_at_batch_size(out_path):
    writer = CheckpointWriter(out_path, batch_save_size=10)

    writer.note_accepted(9)
    assert not writer.due
    assert writer.dirty

    writer.note_accepted()
    assert writer.due

    result = writer.flush(_records(*"abcdefghij"))
    assert result.ok
    assert result.record_count == 10
    assert writer.state.unsaved_count == 0
    assert writer.state.last_flush_at is not None
    assert not writer.dirty
    assert len(json.loads(out_path.read_text(encoding="utf-8"))) == 10


def test_flush_is_byte_identical_for_unchanged_collection(out_path):
    writer = CheckpointWriter(out_path)
    records = _records("a", "b")

    writer.flush(records)
    first = out_path.read_bytes()
    writer.flush(records)

    assert out_path.read_bytes() == first
    assert writer.flushes == 2


def test_document_layout(out_path):
    CheckpointWriter(out_path).flush(_records("a"))
    doc = json.loads(out_path.read_text(encoding="utf-8"))
    assert doc == [{
        "identity_key": "a",
        "fields": {"author": "author a", "rating": None},
        "derived_flags": {},
    }]


def test_failed_rename_keeps_previous_document(out_path, monkeypatch):
    writer = CheckpointWriter(out_path)
    writer.flush(_records("a"))
    before = out_path.read_bytes()

    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(checkpoint.os, "replace", boom)
    writer.note_accepted()
    result = writer.flush(_records("a", "b"))

    assert not result.ok
    assert isinstance(result.error, CheckpointWriteFailure)
    assert writer.failures == 1
    assert writer.state.unsaved_count == 1
    # old document untouched and complete, no temp file left behind
    assert out_path.read_bytes() == before
    assert [r["identity_key"] for r in json.loads(before)] == ["a"]
    assert os.listdir(out_path.parent) == [out_path.name]


def test_unwritable_target_is_reported_not_raised(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    writer = CheckpointWriter(blocker / "reviews.json")

    result = writer.flush(_records("a"))

    assert not result.ok
    assert writer.failures == 1


def test_load_round_trip(out_path):
    writer = CheckpointWriter(out_path)
    assert writer.load() == []

    records = _records("a", "b", "c")
    writer.flush(records)

    loaded = CheckpointWriter(out_path).load()
    assert [r.to_dict() for r in loaded] == [r.to_dict() for r in records]


@pytest.mark.parametrize("content", [
    '[{"identity_key": "a", "fields": {}',       # truncated
    '{"records": []}',                           # not a list
    '[{"fields": {}}]',                          # no key
    '["a"]',
])
def test_load_rejects_bad_documents(out_path, content):
    out_path.write_text(content, encoding="utf-8")
    with pytest.raises(CheckpointReadFailure):
        CheckpointWriter(out_path).load()
