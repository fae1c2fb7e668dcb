"""Vote stores: one current vote per signer, last write wins.

The audit engine only relies on two operations:

- ``put(vote)``: atomic upsert keyed by the raw ``signer`` value. A
  resubmission replaces the previous record entirely and moves it to the end
  of the storage order.
- ``get_all()``: every current record as its stored JSON mapping. Records are
  handed back unparsed so the engine can report and skip malformed rows
  instead of failing the whole batch.
"""

import json
import logging
import os
import tempfile
import threading
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from .models import VoteRecord

logger = logging.getLogger(__name__)


class VoteStore:
    """Interface shared by the concrete stores."""

    def put(self, vote: VoteRecord) -> bool:
        raise NotImplementedError

    def get_all(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def get(self, signer: str) -> Optional[Dict[str, Any]]:
        for raw in self.get_all():
            if isinstance(raw, dict) and raw.get("signer") == signer:
                return raw
        return None

    def __len__(self) -> int:
        return len(self.get_all())


class MemoryVoteStore(VoteStore):
    def __init__(self, records: Optional[List[Dict[str, Any]]] = None):
        self._lock = threading.Lock()
        self._votes: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for raw in records or []:
            # seeding accepts raw rows as-is, malformed ones included
            key = raw.get("signer") if isinstance(raw, dict) else None
            self._votes[str(key) if key is not None else f"__row{len(self._votes)}"] = raw

    def put(self, vote: VoteRecord) -> bool:
        row = vote.to_dict()
        with self._lock:
            self._votes.pop(vote.signer, None)
            self._votes[vote.signer] = row
        logger.debug("stored vote for %s", vote.signer)
        return True

    def get_all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._votes.values())

    def get(self, signer: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._votes.get(signer)

    def __len__(self) -> int:
        with self._lock:
            return len(self._votes)


class JsonFileVoteStore(VoteStore):
    """Votes kept in a single JSON document: ``{"votes": [...]}``.

    Writes go to a temporary file in the same directory followed by
    ``os.replace`` so a reader never sees a torn document. A document that
    exists but cannot be read is never overwritten.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> Optional[List[Any]]:
        """The stored rows; ``[]`` when there is no file yet, ``None`` when it is unreadable."""
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.warning("vote ledger %s unreadable", self.path)
            return None
        votes = data.get("votes") if isinstance(data, dict) else None
        if not isinstance(votes, list):
            logger.warning("vote ledger %s has no 'votes' list", self.path)
            return None
        return votes

    def _write(self, votes: List[Any]) -> None:
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        tf = tempfile.NamedTemporaryFile("w", delete=False, dir=directory, encoding="utf-8")
        try:
            with tf:
                json.dump({"votes": votes}, tf, indent=2)
                tf.flush()
                os.fsync(tf.fileno())
            os.replace(tf.name, self.path)
        except Exception:
            if os.path.exists(tf.name):
                os.unlink(tf.name)
            raise

    def put(self, vote: VoteRecord) -> bool:
        with self._lock:
            stored = self._read()
            if stored is None:
                logger.error("refusing to overwrite unreadable vote ledger %s", self.path)
                return False
            votes = [
                raw
                for raw in stored
                if not (isinstance(raw, dict) and raw.get("signer") == vote.signer)
            ]
            votes.append(vote.to_dict())
            try:
                self._write(votes)
            except (OSError, TypeError, ValueError):
                logger.exception("failed to write vote ledger %s", self.path)
                return False
        return True

    def get_all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return self._read() or []
