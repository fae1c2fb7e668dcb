import json

import pytest

from ledger_audit import store as store_module
from ledger_audit.models import VoteRecord
from ledger_audit.store import JsonFileVoteStore, MemoryVoteStore


def make_vote(signer, candidate="Alice", power=10, ts=1):
    return VoteRecord.from_dict(
        {
            "signer": signer,
            "payload": {"candidateName": candidate, "votingPower": power, "timestamp": ts},
            "signature": {"key": "k"},
        }
    )


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryVoteStore()
    return JsonFileVoteStore(str(tmp_path / "ledger" / "votes.json"))


def test_resubmission_keeps_one_record_equal_to_second_write(store):
    first = make_vote("aa" * 28, "Alice", 10, 1)
    second = make_vote("aa" * 28, "Bob", 20, 2)
    assert store.put(first) is True
    assert store.put(second) is True
    rows = store.get_all()
    assert len(rows) == 1
    assert rows[0] == second.to_dict()
    assert len(store) == 1


def test_resubmission_moves_record_to_end(store):
    store.put(make_vote("aa" * 28))
    store.put(make_vote("bb" * 28))
    store.put(make_vote("aa" * 28, "Carol"))
    signers = [row["signer"] for row in store.get_all()]
    assert signers == ["bb" * 28, "aa" * 28]


def test_get_by_signer(store):
    store.put(make_vote("aa" * 28, "Alice"))
    assert store.get("aa" * 28)["payload"]["candidateName"] == "Alice"
    assert store.get("cc" * 28) is None


def test_json_store_survives_reopen(tmp_path):
    path = str(tmp_path / "votes.json")
    JsonFileVoteStore(path).put(make_vote("aa" * 28, "Alice", 5))
    reopened = JsonFileVoteStore(path)
    assert reopened.get_all()[0]["payload"]["votingPower"] == 5


def test_json_store_corrupt_file_reads_as_empty_and_is_not_overwritten(tmp_path):
    path = tmp_path / "votes.json"
    truncated = json.dumps({"votes": [make_vote("aa" * 28).to_dict(), make_vote("bb" * 28).to_dict()]})[:-20]
    path.write_text(truncated)
    store = JsonFileVoteStore(str(path))
    assert store.get_all() == []
    assert store.put(make_vote("cc" * 28)) is False
    assert path.read_text() == truncated


def test_json_store_refuses_document_without_votes_list(tmp_path):
    path = tmp_path / "votes.json"
    path.write_text('{"ballots": []}')
    store = JsonFileVoteStore(str(path))
    assert store.put(make_vote("aa" * 28)) is False
    assert json.loads(path.read_text()) == {"ballots": []}


def test_json_store_failed_write_leaves_no_temp_file(tmp_path, monkeypatch):
    path = tmp_path / "votes.json"
    store = JsonFileVoteStore(str(path))
    assert store.put(make_vote("aa" * 28)) is True
    before = path.read_text()

    def broken_dump(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(store_module.json, "dump", broken_dump)
    assert store.put(make_vote("bb" * 28)) is False
    assert sorted(p.name for p in tmp_path.iterdir()) == ["votes.json"]
    assert path.read_text() == before


def test_memory_store_can_be_seeded_with_raw_rows():
    store = MemoryVoteStore([{"signer": "x", "payload": "garbage"}, "not even a dict"])
    assert len(store.get_all()) == 2
