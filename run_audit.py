"""Offline demo of a ledger audit run.

Run this script from the repository root. It fills an in-memory ledger with a
handful of votes covering every audit outcome, answers balance queries from a
fixed table instead of the live oracle, and runs the audit twice to show the
cooldown refusal.
"""

import logging

from ledger_audit import codec
from ledger_audit.controller import AuditController
from ledger_audit.engine import VerificationEngine
from ledger_audit.models import VoteRecord
from ledger_audit.oracle import LOVELACE_PER_ADA, StaticLedgerOracle
from ledger_audit.store import MemoryVoteStore


def _print_heading(msg: str):
    print()
    print(msg)


def _print_kv(key: str, value: str):
    print(f"  {key}: {value}")


def _vote(signer: str, candidate: str, power, ts: int, key: str = "wallet_key") -> VoteRecord:
    return VoteRecord.from_dict(
        {
            "signer": signer,
            "payload": {"candidateName": candidate, "votingPower": power, "timestamp": ts},
            "signature": {"key": key},
        }
    )


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    alice_hash = "a1" * 28
    bob_hash = "b2" * 28
    carol_hash = "e0" + "c3" * 28

    _print_heading("[1] Credentials")
    balances = {}
    for label, raw, lovelace in (
        ("alice", alice_hash, 1000 * LOVELACE_PER_ADA),
        ("bob", bob_hash, 2500 * LOVELACE_PER_ADA),
        ("carol", carol_hash, 400 * LOVELACE_PER_ADA),
    ):
        address = codec.to_canonical_address(raw)
        balances[address] = lovelace
        _print_kv(label, address)

    _print_heading("[2] Ledger")
    store = MemoryVoteStore()
    store.put(_vote(alice_hash, "Alice", 998, 1))
    store.put(_vote(bob_hash, "Bob", 2000, 2))
    # resubmission replaces bob's first vote
    store.put(_vote(bob_hash, "Bob", 2499, 3))
    store.put(_vote(carol_hash, "Alice", 900, 4))
    store.put(_vote("d4" * 28, "Bob", 50, 5, key="random_key_1"))
    store.put(_vote("ff" + "d4" * 28, "Carol", 10, 6))
    _print_kv("records", str(len(store)))

    oracle = StaticLedgerOracle(balances)
    engine = VerificationEngine(store, oracle)
    controller = AuditController(engine, cooldown=5.0)

    _print_heading("[3] Audit")
    report = controller.run_audit()
    for line in report.log:
        print(f"  [{line.severity.value:>7}] {line.message}")

    _print_heading("[4] Re-run inside the cooldown")
    again = controller.run_audit()
    _print_kv("refused", str(controller.last_refused))
    _print_kv("same report", str(again is report))
    _print_kv("cooldown remaining", f"{controller.cooldown_remaining():.1f}s")


if __name__ == "__main__":
    main()
