"""Small CLI for interacting with the ledger audit API.

Usage examples:
    python cli.py submit --signer <hex> --candidate Alice --power 998
    python cli.py audit
    python cli.py results
    python cli.py ledger --out election-ledger.json
"""

import argparse
import json
import logging
import time

import requests


BASE = "http://127.0.0.1:5000"
TIMEOUT = 10

logger = logging.getLogger("ledger_audit.cli")


def submit(base: str, signer: str, candidate: str, power: float, key: str):
    vote = {
        "signer": signer,
        "payload": {
            "candidateName": candidate,
            "votingPower": power,
            "timestamp": int(time.time() * 1000),
        },
        "signature": {"key": key},
    }
    r = requests.post(f"{base}/api/votes", json=vote, timeout=TIMEOUT)
    print(r.json())


def audit(base: str):
    r = requests.post(f"{base}/api/audit", timeout=TIMEOUT)
    body = r.json()
    if body.get("refused"):
        print(f"audit refused, cooldown {body.get('cooldownRemaining')}s remaining")
    for line in body.get("log", []):
        print(f"[{line['severity']:>7}] {line['message']}")


def results(base: str):
    r = requests.get(f"{base}/api/results", timeout=TIMEOUT)
    body = r.json()
    print(f"voting {body['status']}")
    for row in body.get("rankings", []):
        print(f"  #{row['rank']} {row['candidateName']}: {row['power']} ({row['sharePercent']}%)")
    if body.get("winner"):
        print(f"{body['label']}: {body['winner']['candidateName']}")


def ledger(base: str, out: str):
    r = requests.get(f"{base}/api/votes", params={"download": 1}, timeout=TIMEOUT)
    r.raise_for_status()
    with open(out, "w", encoding="utf-8") as f:
        json.dump(r.json(), f, indent=2)
    logger.info("wrote %s", out)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    p = argparse.ArgumentParser()
    p.add_argument("--base", default=BASE)
    sub = p.add_subparsers(dest="cmd")
    s = sub.add_parser("submit")
    s.add_argument("--signer", required=True)
    s.add_argument("--candidate", required=True)
    s.add_argument("--power", type=float, required=True)
    s.add_argument("--key", default="cli")
    sub.add_parser("audit")
    sub.add_parser("results")
    d = sub.add_parser("ledger")
    d.add_argument("--out", default="election-ledger.json")
    args = p.parse_args()
    try:
        if args.cmd == "submit":
            submit(args.base, args.signer, args.candidate, args.power, args.key)
        elif args.cmd == "audit":
            audit(args.base)
        elif args.cmd == "results":
            results(args.base)
        elif args.cmd == "ledger":
            ledger(args.base, args.out)
        else:
            p.print_help()
    except requests.RequestException as e:
        logger.error("request to %s failed: %s", args.base, e)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
