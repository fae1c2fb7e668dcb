"""Flask API for the vote ledger and its audit.

Endpoints:
- POST /api/votes -> submit (or resubmit) a signed vote
- GET /api/votes -> the raw vote ledger; ``?download=1`` serves it as a file
- POST /api/audit -> run the ledger audit (refused during the cooldown)
- GET /api/results -> unverified standings plus the recent-votes feed
- GET /api/config -> public election settings
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from flask import Flask, Response, jsonify, request

from . import codec, tally
from .config import Settings
from .controller import AuditController
from .engine import VerificationEngine
from .models import MalformedRecord, VoteRecord
from .oracle import LedgerOracleClient, StaticLedgerOracle
from .store import JsonFileVoteStore, MemoryVoteStore, VoteStore

logger = logging.getLogger(__name__)

LEDGER_FILENAME = "election-ledger.json"
STATE_KEY = "ledger_audit"


def build_store(settings: Settings) -> VoteStore:
    if settings.vote_store_path:
        return JsonFileVoteStore(settings.vote_store_path)
    return MemoryVoteStore()


def build_oracle(settings: Settings):
    if settings.balances_file:
        return StaticLedgerOracle.from_file(settings.balances_file, settings.voting_mode)
    return LedgerOracleClient(settings.oracle_url, settings.oracle_timeout)


def build_controller(
    settings: Settings,
    store: VoteStore,
    oracle,
    clock: Optional[Callable[[], float]] = None,
    now: Optional[Callable[[], datetime]] = None,
) -> AuditController:
    engine = VerificationEngine(
        store,
        oracle,
        mode=settings.voting_mode,
        snapshot_epoch=settings.snapshot_epoch,
        tolerance=settings.tolerance,
        mock_key_prefixes=settings.mock_key_prefixes,
        tie_break=settings.tie_break,
        voting_end=settings.voting_end,
        now=now,
    )
    if clock is None:
        return AuditController(engine, settings.cooldown)
    return AuditController(engine, settings.cooldown, clock)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[VoteStore] = None,
    oracle=None,
    clock: Optional[Callable[[], float]] = None,
    now: Optional[Callable[[], datetime]] = None,
) -> Flask:
    """Build the API around one election context (settings, store, controller)."""
    settings = settings or Settings.from_env()
    store = store if store is not None else build_store(settings)
    oracle = oracle if oracle is not None else build_oracle(settings)

    app = Flask(__name__)
    state: Dict[str, Any] = {
        "settings": settings,
        "store": store,
        "controller": build_controller(settings, store, oracle, clock, now),
        "now": now or (lambda: datetime.now(timezone.utc)),
    }
    app.extensions[STATE_KEY] = state

    @app.route("/api/votes", methods=["POST"])
    def submit_vote():
        """Store a vote. Expects {"signer", "payload", "signature", "signer_bech32"?}."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "vote must be a JSON object"}), 400
        try:
            vote = VoteRecord.from_dict(data)
        except MalformedRecord as e:
            return jsonify({"error": str(e)}), 400
        if not vote.signer_canonical:
            vote.signer_canonical = codec.to_canonical_address(vote.signer)
        if not state["store"].put(vote):
            return jsonify({"error": "failed to store vote"}), 500
        logger.info("vote stored for %s", vote.signer_canonical or vote.signer)
        return jsonify({"status": "ok", "signer": vote.signer_canonical or vote.signer}), 201

    @app.route("/api/votes", methods=["GET"])
    def list_votes():
        votes = state["store"].get_all()
        if request.args.get("download"):
            return Response(
                json.dumps(votes, indent=2),
                mimetype="application/json",
                headers={"Content-Disposition": f"attachment; filename={LEDGER_FILENAME}"},
            )
        return jsonify(votes)

    @app.route("/api/audit", methods=["POST"])
    def run_audit():
        controller: AuditController = state["controller"]
        report = controller.run_audit()
        body = report.to_dict() if report is not None else {}
        body["refused"] = controller.last_refused
        body["cooldownRemaining"] = round(controller.cooldown_remaining(), 3)
        return jsonify(body)

    @app.route("/api/results", methods=["GET"])
    def results():
        settings: Settings = state["settings"]
        records = tally.parse_records(state["store"].get_all())
        now = state["now"]()
        ranked = tally.standings(
            tally.unverified_tally(records, settings.tie_break), settings.voting_end, now
        )
        body = ranked.to_dict()
        body["status"] = "open" if tally.voting_open(settings.voting_end, now) else "closed"
        body["votes"] = tally.recent_votes(records)
        return jsonify(body)

    @app.route("/api/config", methods=["GET"])
    def public_config():
        return jsonify(state["settings"].public())

    return app


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    create_app().run(debug=True)


if __name__ == "__main__":
    main()
