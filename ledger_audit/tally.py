"""Tally aggregation and ranking.

Only verified records reach :func:`aggregate`; each contributes its claimed
power to its candidate. Ranking is by descending power, with an explicit
tie-break instead of relying on sort stability.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import MalformedRecord, TallyEntry, VoteRecord, decimal_to_json

PROVISIONAL_LABEL = "Current Leader"
FINAL_LABEL = "Winner"

# (candidate name, claimed power, input position of the verified record)
Credit = Tuple[str, Decimal, int]


class TieBreak(Enum):
    FIRST_VERIFIED = "first_verified"
    NAME = "name"

    @classmethod
    def parse(cls, value: Any) -> "TieBreak":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown tie-break rule: {value!r}") from None


def aggregate(credits: Iterable[Credit], tie_break: TieBreak = TieBreak.FIRST_VERIFIED) -> List[TallyEntry]:
    entries: Dict[str, TallyEntry] = {}
    for name, power, position in credits:
        entry = entries.get(name)
        if entry is None:
            entries[name] = TallyEntry(name, Decimal(power), first_seen=position)
        else:
            entry.power += power
            entry.first_seen = min(entry.first_seen, position)

    total = sum((e.power for e in entries.values()), Decimal(0))
    for entry in entries.values():
        entry.share_percent = entry.power / total * 100 if total > 0 else Decimal(0)

    if tie_break is TieBreak.NAME:
        key = lambda e: (-e.power, e.candidate_name)
    else:
        key = lambda e: (-e.power, e.first_seen)
    return sorted(entries.values(), key=key)


def total_power(entries: Iterable[TallyEntry]) -> Decimal:
    return sum((e.power for e in entries), Decimal(0))


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def leader_label(voting_end: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Provisional label while voting is still open, final label once it has ended."""
    if voting_end is None:
        return FINAL_LABEL
    now = _utc(now or datetime.now(timezone.utc))
    return PROVISIONAL_LABEL if now < _utc(voting_end) else FINAL_LABEL


def voting_open(voting_end: Optional[datetime], now: Optional[datetime] = None) -> bool:
    return leader_label(voting_end, now) == PROVISIONAL_LABEL


@dataclass
class Standings:
    entries: List[TallyEntry]
    total_power: Decimal
    label: str

    @property
    def winner(self) -> Optional[TallyEntry]:
        return self.entries[0] if self.entries else None

    def to_dict(self) -> Dict[str, Any]:
        winner = self.winner
        return {
            "label": self.label,
            "winner": winner.to_dict() if winner else None,
            "totalPower": decimal_to_json(self.total_power),
            "rankings": [
                dict(entry.to_dict(), rank=i + 1) for i, entry in enumerate(self.entries)
            ],
        }


def standings(
    entries: List[TallyEntry],
    voting_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Standings:
    return Standings(entries, total_power(entries), leader_label(voting_end, now))


## --- unverified results feed ---------------------------------------------


def parse_records(raw_records: Iterable[Any]) -> List[VoteRecord]:
    """Parse stored rows, dropping the ones that cannot be read."""
    records = []
    for raw in raw_records:
        try:
            records.append(VoteRecord.from_dict(raw))
        except MalformedRecord:
            continue
    return records


def recent_votes(records: Iterable[VoteRecord], limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Display rows for the raw vote log, newest first."""
    rows = [
        {
            "signer": rec.credential,
            "candidateName": rec.payload.candidate_name,
            "votingPower": decimal_to_json(rec.payload.voting_power),
            "timestamp": rec.payload.timestamp,
        }
        for rec in records
    ]
    rows.sort(key=lambda row: row["timestamp"], reverse=True)
    return rows[:limit] if limit is not None else rows


def unverified_tally(records: List[VoteRecord], tie_break: TieBreak = TieBreak.FIRST_VERIFIED) -> List[TallyEntry]:
    """Tally every stored vote at face value, without the ledger cross-check."""
    ordered = sorted(enumerate(records), key=lambda item: (item[1].payload.timestamp, item[0]))
    return aggregate(
        ((rec.payload.candidate_name, rec.payload.voting_power, pos) for pos, (_, rec) in enumerate(ordered)),
        tie_break,
    )
