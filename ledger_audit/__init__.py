"""ledger_audit package - vote ledger verification and tally

Takes the stored votes of a wallet-based election, cross-checks each signer's
claimed voting power against a ledger oracle and produces a ranked, auditable
tally of the votes that pass.
"""

from . import codec, controller, engine, oracle, store, tally
from .codec import to_canonical_address
from .controller import AuditController
from .engine import VerificationEngine
from .models import AuditReport, Classification, TallyEntry, VoteRecord

__all__ = [
    "codec",
    "controller",
    "engine",
    "oracle",
    "store",
    "tally",
    "to_canonical_address",
    "AuditController",
    "VerificationEngine",
    "AuditReport",
    "Classification",
    "TallyEntry",
    "VoteRecord",
]
