from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ledger_audit import tally
from ledger_audit.models import VoteRecord, decimal_to_json
from ledger_audit.tally import TieBreak


END = datetime(2025, 12, 2, 12, 0, tzinfo=timezone.utc)


def credits(*items):
    return [(name, Decimal(str(power)), pos) for name, power, pos in items]


def test_aggregate_sums_and_ranks():
    entries = tally.aggregate(credits(("Alice", 998, 0), ("Bob", 2500, 1), ("Alice", 12, 2)))
    assert [(e.candidate_name, e.power) for e in entries] == [("Bob", 2500), ("Alice", 1010)]
    assert tally.total_power(entries) == Decimal(3510)


def test_shares_sum_to_one_hundred():
    entries = tally.aggregate(credits(("A", 1, 0), ("B", 1, 1), ("C", 1, 2)))
    assert abs(sum(e.share_percent for e in entries) - 100) < Decimal("0.000001")
    assert round(entries[0].share_percent, 2) == Decimal("33.33")


def test_zero_total_gives_zero_shares():
    entries = tally.aggregate(credits(("A", 0, 0), ("B", 0, 1)))
    assert all(e.share_percent == 0 for e in entries)
    assert tally.aggregate([]) == []


def test_tie_break_first_verified():
    entries = tally.aggregate(credits(("Zed", 5, 0), ("Amy", 5, 1)))
    assert [e.candidate_name for e in entries] == ["Zed", "Amy"]


def test_tie_break_by_name():
    entries = tally.aggregate(credits(("Zed", 5, 0), ("Amy", 5, 1)), TieBreak.NAME)
    assert [e.candidate_name for e in entries] == ["Amy", "Zed"]


def test_first_seen_is_earliest_credit():
    entries = tally.aggregate(credits(("Amy", 2, 3), ("Zed", 5, 1), ("Amy", 3, 2)))
    # Amy's first credit is at position 2, Zed's at 1: Zed wins the tie
    assert [e.candidate_name for e in entries] == ["Zed", "Amy"]


def test_tie_break_parse():
    assert TieBreak.parse("NAME") is TieBreak.NAME
    with pytest.raises(ValueError):
        TieBreak.parse("coin_flip")


def test_leader_label():
    assert tally.leader_label(END, datetime(2025, 12, 1, tzinfo=timezone.utc)) == "Current Leader"
    assert tally.leader_label(END, datetime(2025, 12, 3, tzinfo=timezone.utc)) == "Winner"
    assert tally.leader_label(END, END) == "Winner"
    assert tally.leader_label(None) == "Winner"
    # naive instants are read as UTC
    assert tally.leader_label(END, datetime(2025, 12, 2, 11, 59)) == "Current Leader"


def test_standings_winner_and_dict():
    entries = tally.aggregate(credits(("Alice", 75, 0), ("Bob", 25, 1)))
    result = tally.standings(entries, END, datetime(2025, 12, 1, tzinfo=timezone.utc))
    assert result.winner.candidate_name == "Alice"
    body = result.to_dict()
    assert body["label"] == "Current Leader"
    assert body["totalPower"] == 100
    assert [(r["rank"], r["candidateName"], r["sharePercent"]) for r in body["rankings"]] == [
        (1, "Alice", 75.0),
        (2, "Bob", 25.0),
    ]


def test_standings_empty():
    result = tally.standings([])
    assert result.winner is None
    assert result.to_dict()["winner"] is None


def vote(signer, candidate, power, ts):
    return VoteRecord.from_dict(
        {
            "signer": signer,
            "payload": {"candidateName": candidate, "votingPower": power, "timestamp": ts},
        }
    )


def test_recent_votes_newest_first():
    records = [vote("a", "Alice", 1, 100), vote("b", "Bob", 2.5, 300), vote("c", "Alice", 3, 200)]
    rows = tally.recent_votes(records)
    assert [r["timestamp"] for r in rows] == [300, 200, 100]
    assert rows[0]["votingPower"] == 2.5
    assert len(tally.recent_votes(records, limit=1)) == 1


def test_parse_records_drops_unreadable_rows():
    rows = [vote("a", "Alice", 1, 1).to_dict(), {"signer": "b"}, 7]
    assert [r.signer for r in tally.parse_records(rows)] == ["a"]


def test_unverified_tally_breaks_ties_by_submission_time():
    records = [vote("a", "Zed", 5, 200), vote("b", "Amy", 5, 100)]
    entries = tally.unverified_tally(records)
    assert [e.candidate_name for e in entries] == ["Amy", "Zed"]


def test_decimal_to_json_stays_serializable():
    assert decimal_to_json(Decimal(998)) == 998
    assert decimal_to_json(Decimal("2.5")) == 2.5
    assert isinstance(decimal_to_json(Decimal("1e30")), float)
    assert decimal_to_json(Decimal("Infinity")) is None
