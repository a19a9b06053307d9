# -*- coding: utf-8 -*-
"""
Provenance Tracking - Stream Specification Engine

SHA-256 audit trail for the artefacts the engine hands to the outside
world: SI payloads sent to the solver and streamsets written to or read
from disk. Entries are chain-hashed in recording order so a log can be
checked for tampering after export.

Actions tracked:
    - payload_built
    - streamset_saved
    - streamset_loaded

Example:
    >>> from energy_integration.stream_spec.provenance import (
    ...     ProvenanceTracker, compute_hash,
    ... )
    >>> tracker = ProvenanceTracker()
    >>> tracker.record("payload", "session", "payload_built", compute_hash({}))
    '3f1c...'
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

__all__ = ["ProvenanceTracker", "compute_hash"]


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def compute_hash(data: Any) -> str:
    """Compute a deterministic SHA-256 hash of arbitrary data.

    Args:
        data: Data to hash (dict, list, str, or Pydantic model).

    Returns:
        SHA-256 hex digest string.
    """
    if hasattr(data, "model_dump"):
        serializable = data.model_dump(mode="json", by_alias=True)
    else:
        serializable = data
    raw = json.dumps(serializable, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ProvenanceTracker:
    """Chain-hashed provenance log.

    Attributes:
        entry_count: Number of entries recorded.
    """

    _GENESIS_HASH = hashlib.sha256(b"energy-integration-stream-spec").hexdigest()

    def __init__(self) -> None:
        self._entries: List[Dict[str, Any]] = []
        self._last_chain_hash: str = self._GENESIS_HASH
        self._lock = threading.Lock()

    def record(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        data_hash: str,
    ) -> str:
        """Record a provenance entry.

        Args:
            entity_type: Type of entity (payload, streamset).
            entity_id: Entity identifier (streamset name, session id).
            action: Action performed.
            data_hash: SHA-256 hash of the associated data.

        Returns:
            Chain hash of the new entry.
        """
        timestamp = _utcnow().isoformat()
        with self._lock:
            chain_hash = hashlib.sha256(json.dumps({
                "previous": self._last_chain_hash,
                "data": data_hash,
                "action": action,
                "timestamp": timestamp,
            }, sort_keys=True).encode("utf-8")).hexdigest()
            self._entries.append({
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "data_hash": data_hash,
                "timestamp": timestamp,
                "previous_hash": self._last_chain_hash,
                "chain_hash": chain_hash,
            })
            self._last_chain_hash = chain_hash

        logger.debug(
            "Recorded provenance: %s/%s action=%s hash=%s",
            entity_type, entity_id, action, chain_hash[:16],
        )
        return chain_hash

    def verify_chain(self) -> bool:
        """Recompute every chain hash and compare it with the stored one."""
        with self._lock:
            entries = list(self._entries)
        previous = self._GENESIS_HASH
        for entry in entries:
            expected = hashlib.sha256(json.dumps({
                "previous": previous,
                "data": entry["data_hash"],
                "action": entry["action"],
                "timestamp": entry["timestamp"],
            }, sort_keys=True).encode("utf-8")).hexdigest()
            if entry["previous_hash"] != previous or entry["chain_hash"] != expected:
                logger.warning(
                    "Provenance chain broken at %s/%s",
                    entry["entity_type"], entry["entity_id"],
                )
                return False
            previous = expected
        return True

    def get_entries(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Return the most recent entries, newest first."""
        with self._lock:
            return [dict(e) for e in reversed(self._entries[-limit:])]

    @property
    def entry_count(self) -> int:
        """Return the total number of provenance entries."""
        with self._lock:
            return len(self._entries)

    def export_json(self) -> str:
        """Export all provenance records as a JSON string."""
        with self._lock:
            return json.dumps(self._entries, indent=2, default=str)
