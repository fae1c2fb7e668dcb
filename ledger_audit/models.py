"""Record and result types shared by the store, engine and HTTP surface.

Stored votes keep the JSON shape produced by the voting page
(``signer`` / ``signer_bech32`` / ``payload`` / ``signature``); the types in
this module parse that shape once so the rest of the code never compares
loosely-typed dict fields ad hoc.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

# total ADA supply, in whole units
MAX_VOTING_POWER = Decimal(45_000_000_000)
# one lovelace is 1e-6 ADA
POWER_DECIMALS = 6


class MalformedRecord(ValueError):
    """A stored vote whose shape cannot be interpreted."""


class Classification(Enum):
    REJECTED_BAD_SIGNATURE = "rejected_bad_signature"
    REJECTED_BAD_CREDENTIAL_FORMAT = "rejected_bad_credential_format"
    REJECTED_LEDGER_MISMATCH = "rejected_ledger_mismatch"
    VERIFIED = "verified"

    @property
    def verified(self) -> bool:
        return self is Classification.VERIFIED


class Severity(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    HEADER = "header"
    DATA = "data"


def to_decimal(value: Any) -> Decimal:
    """Parse a JSON number (or numeric string) into a Decimal.

    Floats go through ``str`` so that 998.1 stays 998.1 instead of its binary
    expansion. Booleans are refused even though they are ints.
    """
    if isinstance(value, bool) or value is None:
        raise MalformedRecord(f"not a number: {value!r}")
    try:
        result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise MalformedRecord(f"not a number: {value!r}") from None
    if not result.is_finite():
        raise MalformedRecord(f"not a finite number: {value!r}")
    return result


def decimal_to_json(value: Decimal) -> Any:
    """Render a Decimal as an int when integral, else a float."""
    if not value.is_finite():
        return None
    if value == value.to_integral_value() and value.adjusted() < 18:
        return int(value)
    return float(value)


def to_voting_power(value: Any) -> Decimal:
    """Parse a claimed voting power in whole units (ADA).

    The amount must lie between zero and the total ADA supply and carry no
    more precision than one lovelace.
    """
    power = to_decimal(value)
    if power < 0:
        raise MalformedRecord("payload.votingPower is negative")
    if power > MAX_VOTING_POWER:
        raise MalformedRecord(f"payload.votingPower exceeds {MAX_VOTING_POWER:,}")
    if power and power.normalize().as_tuple().exponent < -POWER_DECIMALS:
        raise MalformedRecord(f"payload.votingPower has more than {POWER_DECIMALS} decimal places")
    return power


@dataclass
class VotePayload:
    candidate_name: str
    voting_power: Decimal
    timestamp: int = 0
    election_id: Optional[str] = None
    action: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> "VotePayload":
        if not isinstance(raw, Mapping):
            raise MalformedRecord("payload must be an object")
        name = raw.get("candidateName")
        if not isinstance(name, str) or not name.strip():
            raise MalformedRecord("payload.candidateName missing")
        power = to_voting_power(raw.get("votingPower", 0))
        timestamp = raw.get("timestamp", 0)
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise MalformedRecord("payload.timestamp must be a number")
        try:
            timestamp = int(timestamp)
        except (OverflowError, ValueError):
            raise MalformedRecord("payload.timestamp must be finite") from None
        return cls(
            candidate_name=name,
            voting_power=power,
            timestamp=timestamp,
            election_id=raw.get("electionId"),
            action=raw.get("action"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "candidateName": self.candidate_name,
            "votingPower": decimal_to_json(self.voting_power),
            "timestamp": self.timestamp,
        }
        if self.election_id is not None:
            out["electionId"] = self.election_id
        if self.action is not None:
            out["action"] = self.action
        return out


@dataclass
class VoteRecord:
    signer: str
    payload: VotePayload
    signature: Dict[str, Any] = field(default_factory=dict)
    signer_canonical: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> "VoteRecord":
        if not isinstance(raw, Mapping):
            raise MalformedRecord("vote must be an object")
        signer = raw.get("signer")
        if not isinstance(signer, str) or not signer:
            raise MalformedRecord("signer missing")
        signature = raw.get("signature") or {}
        if not isinstance(signature, Mapping):
            raise MalformedRecord("signature must be an object")
        canonical = raw.get("signer_bech32")
        if canonical is not None and not isinstance(canonical, str):
            raise MalformedRecord("signer_bech32 must be a string")
        return cls(
            signer=signer,
            payload=VotePayload.from_dict(raw.get("payload")),
            signature=dict(signature),
            signer_canonical=canonical or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "signer": self.signer,
            "payload": self.payload.to_dict(),
            "signature": dict(self.signature),
        }
        if self.signer_canonical:
            out["signer_bech32"] = self.signer_canonical
        return out

    @property
    def signature_key(self) -> Optional[str]:
        key = self.signature.get("key")
        return key if isinstance(key, str) else None

    @property
    def credential(self) -> str:
        """The credential the format check resolves: cached Bech32 form first."""
        return self.signer_canonical or self.signer


@dataclass
class RecordOutcome:
    position: int
    record: VoteRecord
    classification: Classification
    address: Optional[str] = None
    claimed: Decimal = Decimal(0)
    actual: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "signer": self.record.signer,
            "address": self.address,
            "candidateName": self.record.payload.candidate_name,
            "classification": self.classification.name,
            "claimed": decimal_to_json(self.claimed),
            "actual": None if self.actual is None else decimal_to_json(self.actual),
        }


@dataclass
class TallyEntry:
    candidate_name: str
    power: Decimal
    share_percent: Decimal = Decimal(0)
    first_seen: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidateName": self.candidate_name,
            "power": decimal_to_json(self.power),
            "sharePercent": float(round(self.share_percent, 2)),
        }


@dataclass
class LogLine:
    message: str
    severity: Severity = Severity.INFO

    def to_dict(self) -> Dict[str, str]:
        return {"message": self.message, "severity": self.severity.value}


@dataclass
class AuditReport:
    verified_count: int = 0
    rejected_count: int = 0
    skipped_count: int = 0
    total_power: Decimal = Decimal(0)
    tally: List[TallyEntry] = field(default_factory=list)
    log: List[LogLine] = field(default_factory=list)
    outcomes: List[RecordOutcome] = field(default_factory=list)
    oracle_available: bool = True
    leader_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verifiedCount": self.verified_count,
            "rejectedCount": self.rejected_count,
            "skippedCount": self.skipped_count,
            "totalPower": decimal_to_json(self.total_power),
            "oracleAvailable": self.oracle_available,
            "leaderLabel": self.leader_label,
            "tally": [entry.to_dict() for entry in self.tally],
            "log": [line.to_dict() for line in self.log],
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }
