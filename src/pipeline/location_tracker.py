# src/pipeline/location_tracker.py - v2
"""Maps logical code locations to the code last seen there.

Each location remembers a digest of its code and every fingerprint
produced from that code (one per content type, narration language or
section flags). A new request with the same code only adds its
fingerprint. A request with different code makes all recorded
fingerprints stale; the orchestrator invalidates them in the cache.

The map is kept in memory and, when a path is given, mirrored to a JSON
file so edits made between two CLI runs are still detected.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class LocationTracker:
    """location -> (code digest, fingerprints) map.

    Updates are synchronous, hence atomic per location under asyncio.

    Args:
        path: JSON file persisting the map. None keeps it process-local.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path).expanduser() if path is not None else None
        self._records: dict[str, dict] = self._load()

    def observe(
        self, location: str | None, code_digest: str, fingerprint: str
    ) -> list[str]:
        """Record a fingerprint produced from the code at a location.

        Returns:
            Fingerprints recorded for the previous code, now stale.
        """
        if location is None:
            return []
        record = self._records.get(location)
        if record is not None and record["code"] == code_digest:
            if fingerprint in record["fingerprints"]:
                return []
            record["fingerprints"].append(fingerprint)
            self._save()
            return []

        stale = [] if record is None else [
            fp for fp in record["fingerprints"] if fp != fingerprint
        ]
        self._records[location] = {"code": code_digest, "fingerprints": [fingerprint]}
        self._save()
        return stale

    def forget(self, location: str) -> None:
        if self._records.pop(location, None) is not None:
            self._save()

    def fingerprints_at(self, location: str) -> list[str]:
        record = self._records.get(location)
        return list(record["fingerprints"]) if record else []

    def _load(self) -> dict[str, dict]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable location map %s: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed location map %s", self._path)
            return {}
        return data

    def _save(self) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".json.tmp")
            tmp.write_text(json.dumps(self._records, indent=2), encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as e:
            logger.warning("Failed to persist location map %s: %s", self._path, e)
