from __future__ import annotations
import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any

from oanda_stream.settings import TelemetrySettings

class Tracer:
    """Appends stream session events to daily CSV/JSONL files."""

    csv_headers = [
        "ts_iso", "session_id", "event_type", "account", "instruments",
        "sink", "state", "status_code", "error_type", "error_message",
        "quotes", "heartbeats", "dropped", "duration_ms",
    ]

    def __init__(self, cfg: TelemetrySettings | None = None):
        cfg = cfg or TelemetrySettings()
        self.provider = cfg.tracing_provider
        self.local_path = Path(cfg.local.path)
        self.redact_keys = set(cfg.redact_keys)

    def _get_log_paths(self) -> tuple[Path | None, Path | None]:
        if "local" not in self.provider:
            return None, None

        self.local_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        csv_path = self.local_path / f"{today}_sessions.csv" if "csv" in self.provider or "both" in self.provider else None
        jsonl_path = self.local_path / f"{today}_sessions.jsonl" if "jsonl" in self.provider or "both" in self.provider else None

        if csv_path and not csv_path.exists():
            with open(csv_path, "w", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=self.csv_headers)
                writer.writeheader()

        return csv_path, jsonl_path

    def redact(self, data: Any) -> Any:
        """Recursively replace the values of sensitive keys."""
        if isinstance(data, dict):
            return {
                k: "***REDACTED***" if k in self.redact_keys else self.redact(v)
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [self.redact(item) for item in data]
        return data

    def log(self, event: Dict[str, Any]) -> None:
        if self.provider == "none":
            return

        csv_path, jsonl_path = self._get_log_paths()
        event.setdefault("ts_iso", datetime.now(timezone.utc).isoformat())
        sanitized = self.redact(event)

        if jsonl_path:
            with open(jsonl_path, "a") as f:
                f.write(json.dumps(sanitized, default=str) + "\n")

        if csv_path:
            row = {k: sanitized.get(k, "") for k in self.csv_headers}
            if isinstance(row["instruments"], list):
                row["instruments"] = ",".join(row["instruments"])
            with open(csv_path, "a", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=self.csv_headers)
                writer.writerow(row)
