"""Ledger oracle clients: voting power per stake address.

The live client batches every address of an audit run into one POST against a
Koios-style ``account_info`` endpoint (or the site's proxy in front of it). A
failed query never aborts an audit: the whole batch degrades to zero power and
the response is flagged as unavailable so the caller can say so in its log.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_ORACLE_URL = "https://api.koios.rest/api/v1/account_info"
DEFAULT_TIMEOUT = 10.0
LOVELACE_PER_ADA = 1_000_000


class VotingMode(Enum):
    BALANCE = "total_balance"
    DELEGATED_POWER = "drep_power"

    @classmethod
    def parse(cls, value: Any) -> "VotingMode":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        aliases = {
            "balance": cls.BALANCE,
            "ada": cls.BALANCE,
            "ada_balance": cls.BALANCE,
            "total_balance": cls.BALANCE,
            "delegated_power": cls.DELEGATED_POWER,
            "drep": cls.DELEGATED_POWER,
            "drep_power": cls.DELEGATED_POWER,
        }
        if key not in aliases:
            raise ValueError(f"unknown voting mode: {value!r}")
        return aliases[key]


@dataclass
class OracleResponse:
    """Power per requested address, in lovelace.

    ``balances`` holds every requested address; addresses missing from the
    oracle's answer map to 0. ``available`` is False when the query failed and
    all balances are the zero fallback.
    """

    balances: Dict[str, int] = field(default_factory=dict)
    available: bool = True
    received: int = 0

    def power_of(self, address: str) -> int:
        return self.balances.get(address, 0)


def unique_addresses(addresses: Iterable[str]) -> List[str]:
    seen = {}
    for addr in addresses:
        if addr and addr not in seen:
            seen[addr] = None
    return list(seen)


def _as_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        # koios sends lovelace as strings; mirror parseInt and drop any fraction
        return int(str(value).strip().split(".")[0])
    except (TypeError, ValueError):
        return 0


def account_power(account: Mapping[str, Any], mode: VotingMode) -> int:
    if mode is VotingMode.DELEGATED_POWER:
        return _as_int(account.get("delegated_drep_power") or account.get("total_balance"))
    return _as_int(account.get("total_balance"))


class LedgerOracleClient:
    def __init__(
        self,
        url: str = DEFAULT_ORACLE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def build_payload(
        self, addresses: List[str], mode: VotingMode, snapshot_epoch: Optional[int]
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"_stake_addresses": addresses, "_action": mode.value}
        if snapshot_epoch is not None:
            payload["_epoch_no"] = snapshot_epoch
        return payload

    def fetch_power(
        self,
        addresses: Iterable[str],
        mode: VotingMode = VotingMode.BALANCE,
        snapshot_epoch: Optional[int] = None,
    ) -> OracleResponse:
        wanted = unique_addresses(addresses)
        fallback = OracleResponse({addr: 0 for addr in wanted}, available=False)
        if not wanted:
            return OracleResponse({}, available=True)

        payload = self.build_payload(wanted, mode, snapshot_epoch)
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("ledger oracle unreachable (%s); assuming zero power", e)
            return fallback
        if not resp.ok:
            logger.warning(
                "ledger oracle answered %s; assuming zero power for %d addresses",
                resp.status_code,
                len(wanted),
            )
            return fallback
        try:
            accounts = resp.json()
        except ValueError:
            logger.warning("ledger oracle returned non-JSON body; assuming zero power")
            return fallback
        if not isinstance(accounts, list):
            logger.warning("ledger oracle returned %s, expected a list", type(accounts).__name__)
            return fallback

        balances = {addr: 0 for addr in wanted}
        received = 0
        for acc in accounts:
            if not isinstance(acc, Mapping):
                continue
            addr = acc.get("stake_address")
            if isinstance(addr, str) and addr in balances:
                balances[addr] = account_power(acc, mode)
                received += 1
        logger.info("ledger oracle returned data for %d/%d addresses", received, len(wanted))
        return OracleResponse(balances, available=True, received=received)


class StaticLedgerOracle:
    """Offline oracle backed by a fixed address -> lovelace mapping.

    The mapping may also be loaded from a JSON file holding either an object of
    balances or a list of ``account_info`` rows.
    """

    def __init__(self, balances: Optional[Mapping[str, int]] = None):
        self.balances = dict(balances or {})
        self.calls: List[Dict[str, Any]] = []

    @classmethod
    def from_file(cls, path: str, mode: VotingMode = VotingMode.BALANCE) -> "StaticLedgerOracle":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, list):
            data = {
                acc["stake_address"]: account_power(acc, mode)
                for acc in data
                if isinstance(acc, Mapping) and isinstance(acc.get("stake_address"), str)
            }
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected an object or a list of accounts")
        return cls({k: _as_int(v) for k, v in data.items() if k})

    def fetch_power(
        self,
        addresses: Iterable[str],
        mode: VotingMode = VotingMode.BALANCE,
        snapshot_epoch: Optional[int] = None,
    ) -> OracleResponse:
        wanted = unique_addresses(addresses)
        self.calls.append({"addresses": wanted, "mode": mode, "snapshot_epoch": snapshot_epoch})
        balances = {addr: self.balances.get(addr, 0) for addr in wanted}
        received = sum(1 for addr in wanted if addr in self.balances)
        return OracleResponse(balances, available=True, received=received)
