"""Vote ledger verification.

Each stored vote goes through the same short-circuiting checks, in order:

1. signature: a signature key carrying a known mock/test prefix is rejected;
2. credential format: the signer (or its cached Bech32 form) must resolve to a
   checksummed stake address;
3. ledger cross-check: the claimed power must be within ``tolerance`` whole
   units of the power the oracle reports for that address;
4. otherwise the vote is verified and its claimed power is credited to its
   candidate.

A rejection never stops the batch, and records are processed strictly in
store order so the audit log reads in the same order as the ledger.

Note that step 1 is a heuristic, not signature verification: nothing here
checks the signature against the signer's public key.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Tuple, Union

from . import codec, tally
from .models import (
    AuditReport,
    Classification,
    LogLine,
    MalformedRecord,
    RecordOutcome,
    Severity,
    VoteRecord,
)
from .oracle import LOVELACE_PER_ADA, OracleResponse, VotingMode
from .store import VoteStore

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal(5)
DEFAULT_MOCK_KEY_PREFIXES = ("random_key",)

# (input position, parsed record or the reason it could not be parsed)
Loaded = Tuple[int, Union[VoteRecord, MalformedRecord]]


def fmt_power(value: Decimal) -> str:
    if not value.is_finite():
        return str(value)
    if value == value.to_integral_value():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


class VerificationEngine:
    def __init__(
        self,
        store: VoteStore,
        oracle,
        mode: VotingMode = VotingMode.BALANCE,
        snapshot_epoch: Optional[int] = None,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        mock_key_prefixes: Iterable[str] = DEFAULT_MOCK_KEY_PREFIXES,
        tie_break: tally.TieBreak = tally.TieBreak.FIRST_VERIFIED,
        voting_end: Optional[datetime] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.oracle = oracle
        self.mode = mode
        self.snapshot_epoch = snapshot_epoch
        self.tolerance = Decimal(tolerance)
        self.mock_key_prefixes = tuple(mock_key_prefixes)
        self.tie_break = tie_break
        self.voting_end = voting_end
        self.now = now

    ## --- individual checks ----------------------------------------------

    def is_mock_signature(self, record: VoteRecord) -> bool:
        key = record.signature_key
        return bool(key) and any(key.startswith(p) for p in self.mock_key_prefixes)

    def resolve_address(self, record: VoteRecord) -> Optional[str]:
        address = codec.to_canonical_address(record.credential)
        return address if codec.is_stake_address(address) else None

    def precheck(self, record: VoteRecord) -> Tuple[Optional[Classification], Optional[str]]:
        """Run the offline checks; returns (rejection or None, canonical address)."""
        if self.is_mock_signature(record):
            return Classification.REJECTED_BAD_SIGNATURE, None
        address = self.resolve_address(record)
        if address is None:
            return Classification.REJECTED_BAD_CREDENTIAL_FORMAT, None
        return None, address

    def ledger_check(self, claimed: Decimal, actual: Decimal) -> Classification:
        if abs(actual - claimed) > self.tolerance:
            return Classification.REJECTED_LEDGER_MISMATCH
        return Classification.VERIFIED

    def classify(self, position: int, record: VoteRecord, ledger: OracleResponse) -> RecordOutcome:
        claimed = record.payload.voting_power
        rejection, address = self.precheck(record)
        if rejection is not None:
            return RecordOutcome(position, record, rejection, address, claimed)
        actual = Decimal(ledger.power_of(address)) / LOVELACE_PER_ADA
        return RecordOutcome(
            position, record, self.ledger_check(claimed, actual), address, claimed, actual
        )

    ## --- full run --------------------------------------------------------

    def load_records(self, report: AuditReport) -> List[Loaded]:
        """Parse every stored row; unreadable rows keep their slot as the parse error."""
        raw_records = self.store.get_all()
        report.log.append(LogLine(f"Retrieved {len(raw_records)} vote records.", Severity.SUCCESS))
        records = []
        for i, raw in enumerate(raw_records):
            try:
                records.append((i, VoteRecord.from_dict(raw)))
            except MalformedRecord as e:
                records.append((i, e))
        return records

    def query_ledger(self, records: List[Loaded], report: AuditReport) -> OracleResponse:
        addresses = []
        for _, record in records:
            if isinstance(record, MalformedRecord):
                continue
            rejection, address = self.precheck(record)
            if rejection is None:
                addresses.append(address)
        unique = list(dict.fromkeys(addresses))
        if not unique:
            report.log.append(LogLine("No valid, non-mock credentials found for ledger query.", Severity.INFO))
            return OracleResponse({}, available=True)

        report.log.append(LogLine(f"Querying ledger for {len(unique)} unique credentials...", Severity.INFO))
        ledger = self.oracle.fetch_power(unique, self.mode, self.snapshot_epoch)
        if ledger.available:
            report.log.append(LogLine(f"Received live data for {ledger.received} accounts.", Severity.SUCCESS))
        else:
            report.oracle_available = False
            report.log.append(
                LogLine("Ledger data unavailable; assuming zero power for every credential.", Severity.WARNING)
            )
        return ledger

    def describe(self, outcome: RecordOutcome) -> LogLine:
        n = outcome.position + 1
        c = outcome.classification
        if c is Classification.REJECTED_BAD_SIGNATURE:
            return LogLine(f"Record #{n}: Invalid Signature (Mock Key).", Severity.ERROR)
        if c is Classification.REJECTED_BAD_CREDENTIAL_FORMAT:
            return LogLine(f"Record #{n}: Invalid Credential Format (Must be a stake address).", Severity.ERROR)
        if c is Classification.REJECTED_LEDGER_MISMATCH:
            return LogLine(
                f"Record #{n}: Ledger Mismatch! Claimed: {fmt_power(outcome.claimed)} | "
                f"Actual: {fmt_power(outcome.actual)}",
                Severity.ERROR,
            )
        return LogLine(
            f"Record #{n}: Verified on Ledger. Power matches (~{fmt_power(outcome.actual)}).",
            Severity.SUCCESS,
        )

    def run(self) -> AuditReport:
        report = AuditReport()
        report.log.append(LogLine("1. Fetching raw vote ledger...", Severity.INFO))
        records = self.load_records(report)

        report.log.append(LogLine("2. Preparing credentials & querying ledger...", Severity.HEADER))
        report.log.append(
            LogLine(
                f"   VOTING MODE: {self.mode.name} | SNAPSHOT EPOCH: {self.snapshot_epoch or 'Latest'}",
                Severity.INFO,
            )
        )
        ledger = self.query_ledger(records, report)

        report.log.append(LogLine("3. Verifying records...", Severity.HEADER))
        credits = []
        for position, record in records:
            if isinstance(record, MalformedRecord):
                report.skipped_count += 1
                report.log.append(
                    LogLine(f"Record #{position + 1}: Unreadable record skipped ({record}).", Severity.ERROR)
                )
                continue
            outcome = self.classify(position, record, ledger)
            report.outcomes.append(outcome)
            report.log.append(self.describe(outcome))
            if outcome.classification.verified:
                report.verified_count += 1
                credits.append((record.payload.candidate_name, outcome.claimed, position))
            else:
                report.rejected_count += 1

        report.tally = tally.aggregate(credits, self.tie_break)
        report.total_power = tally.total_power(report.tally)
        now = self.now() if self.now else None
        report.leader_label = tally.leader_label(self.voting_end, now)
        self.summarize(report)
        logger.info(
            "audit finished: %d verified, %d rejected, %d skipped, total power %s",
            report.verified_count,
            report.rejected_count,
            report.skipped_count,
            report.total_power,
        )
        return report

    def summarize(self, report: AuditReport) -> None:
        log = report.log
        log.append(LogLine("--------------------------------", Severity.HEADER))
        log.append(
            LogLine(
                f"validCount={report.verified_count} invalidCount={report.rejected_count} "
                f"totalPower={fmt_power(report.total_power)}",
                Severity.INFO,
            )
        )
        if report.verified_count == 0:
            log.append(LogLine("No votes passed the ledger audit.", Severity.WARNING))
        else:
            log.append(LogLine("--- VERIFIED LEDGER TALLY ---", Severity.HEADER))
            for entry in report.tally:
                log.append(
                    LogLine(
                        f"{entry.candidate_name}: {fmt_power(entry.power)} ({entry.share_percent:.2f}%)",
                        Severity.DATA,
                    )
                )
            winner = report.tally[0]
            log.append(LogLine(f"{report.leader_label}: {winner.candidate_name}", Severity.SUCCESS))
            log.append(LogLine(f"Verified {report.verified_count} votes against the ledger.", Severity.SUCCESS))
        if report.rejected_count:
            log.append(LogLine(f"Rejected {report.rejected_count} invalid votes.", Severity.WARNING))
        if report.skipped_count:
            log.append(LogLine(f"Skipped {report.skipped_count} unreadable records.", Severity.WARNING))
