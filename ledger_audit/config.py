"""Election audit settings, read from the environment (and a ``.env`` file)."""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from .controller import DEFAULT_COOLDOWN
from .engine import DEFAULT_MOCK_KEY_PREFIXES, DEFAULT_TOLERANCE
from .oracle import DEFAULT_ORACLE_URL, DEFAULT_TIMEOUT, VotingMode
from .tally import TieBreak


class ConfigError(ValueError):
    pass


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant or epoch milliseconds into an aware datetime."""
    value = value.strip()
    if value.isdigit():
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ConfigError(f"not an ISO-8601 instant: {value!r}") from None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass
class Settings:
    election_name: str = "Constitutional Election"
    network: str = "mainnet"
    oracle_url: str = DEFAULT_ORACLE_URL
    oracle_timeout: float = DEFAULT_TIMEOUT
    voting_mode: VotingMode = VotingMode.BALANCE
    snapshot_epoch: Optional[int] = None
    voting_end: Optional[datetime] = None
    cooldown: float = DEFAULT_COOLDOWN
    tolerance: Decimal = DEFAULT_TOLERANCE
    mock_key_prefixes: Tuple[str, ...] = field(default=DEFAULT_MOCK_KEY_PREFIXES)
    tie_break: TieBreak = TieBreak.FIRST_VERIFIED
    vote_store_path: Optional[str] = None
    balances_file: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            load_dotenv()
            env = os.environ

        def get(name: str) -> Optional[str]:
            value = env.get(name)
            return value.strip() if value and value.strip() else None

        settings = cls()
        try:
            if get("ELECTION_NAME"):
                settings.election_name = get("ELECTION_NAME")
            if get("NETWORK"):
                settings.network = get("NETWORK").lower()
            if get("LEDGER_ORACLE_URL"):
                settings.oracle_url = get("LEDGER_ORACLE_URL")
            if get("LEDGER_ORACLE_TIMEOUT"):
                settings.oracle_timeout = float(get("LEDGER_ORACLE_TIMEOUT"))
            if get("VOTING_MODE"):
                settings.voting_mode = VotingMode.parse(get("VOTING_MODE"))
            if get("SNAPSHOT_EPOCH"):
                settings.snapshot_epoch = int(get("SNAPSHOT_EPOCH"))
            if get("VOTING_END"):
                settings.voting_end = parse_instant(get("VOTING_END"))
            if get("AUDIT_COOLDOWN"):
                settings.cooldown = float(get("AUDIT_COOLDOWN"))
            if get("POWER_TOLERANCE"):
                settings.tolerance = Decimal(get("POWER_TOLERANCE"))
            if get("MOCK_KEY_PREFIXES"):
                settings.mock_key_prefixes = tuple(
                    p.strip() for p in get("MOCK_KEY_PREFIXES").split(",") if p.strip()
                )
            if get("TIE_BREAK"):
                settings.tie_break = TieBreak.parse(get("TIE_BREAK"))
            settings.vote_store_path = get("VOTE_STORE_PATH")
            settings.balances_file = get("LEDGER_BALANCES_FILE")
        except (ValueError, InvalidOperation) as e:
            raise ConfigError(str(e)) from e

        if settings.oracle_timeout <= 0:
            raise ConfigError("LEDGER_ORACLE_TIMEOUT must be positive")
        if settings.cooldown < 0:
            raise ConfigError("AUDIT_COOLDOWN must not be negative")
        if settings.tolerance < 0:
            raise ConfigError("POWER_TOLERANCE must not be negative")
        return settings

    def public(self) -> dict:
        """Settings safe to show on the results page."""
        return {
            "electionName": self.election_name,
            "network": self.network,
            "votingMode": self.voting_mode.name,
            "snapshotEpoch": self.snapshot_epoch,
            "votingEnd": self.voting_end.isoformat() if self.voting_end else None,
            "auditCooldown": self.cooldown,
        }
