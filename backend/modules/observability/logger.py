"""
Structured JSON logger — append-only, one object per line (.jsonl).

Usage:
    from modules.observability.logger import StructuredLogger

    logger = StructuredLogger()
    logger.log("plan_abc123", "PLAN_MUTATION", {"action": "add", ...})

Logs are written to  <config.LOGS_DIR>/<session_id>.jsonl.  The directory is
resolved on first write, so tests can point LOGS_DIR at a temp dir.
"""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path

import config


class StructuredLogger:
    """Thread-safe, append-only JSONL logger."""

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._fixed_dir = Path(logs_dir) if logs_dir else None
        self._lock = threading.Lock()
        self._handles: dict[str, object] = {}  # session_id -> file handle

    @property
    def logs_dir(self) -> Path:
        return self._fixed_dir or Path(config.LOGS_DIR)

    # ── public API ────────────────────────────────────────────────────────

    def log(self, session_id: str, event_type: str, payload: dict) -> None:
        """Append one structured JSON record to ``<session_id>.jsonl``."""
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "event_type": event_type,
            "payload": payload,
        }
        line = json.dumps(record, default=str, ensure_ascii=False) + "\n"

        with self._lock:
            fh = self._handles.get(session_id)
            if fh is None:
                fh = self._open(session_id)
            fh.write(line)  # type: ignore[union-attr]
            fh.flush()  # type: ignore[union-attr]

    def read(self, session_id: str, event_type: str | None = None) -> list[dict]:
        """Load a session's records, optionally only one event type."""
        path = self.logs_dir / f"{session_id}.jsonl"
        if not path.exists():
            return []
        with open(path, encoding="utf-8") as fh:
            records = [json.loads(line) for line in fh if line.strip()]
        if event_type is not None:
            records = [r for r in records if r.get("event_type") == event_type]
        return records

    def close(self, session_id: str | None = None) -> None:
        """Close one or all open file handles."""
        with self._lock:
            if session_id:
                fh = self._handles.pop(session_id, None)
                if fh:
                    fh.close()  # type: ignore[union-attr]
            else:
                for fh in self._handles.values():
                    fh.close()  # type: ignore[union-attr]
                self._handles.clear()

    # ── internals ─────────────────────────────────────────────────────────

    def _open(self, session_id: str):  # noqa: ANN202
        logs_dir = self.logs_dir
        os.makedirs(logs_dir, exist_ok=True)
        path = logs_dir / f"{session_id}.jsonl"
        fh = open(path, "a", encoding="utf-8")  # noqa: SIM115
        self._handles[session_id] = fh
        return fh
