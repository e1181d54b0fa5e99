from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Literal
import yaml
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()
ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG = ROOT / "config" / "settings.yaml"

class OandaSettings(BaseModel):
    practice_base: str = "https://api-fxpractice.oanda.com"
    live_base: str = "https://api-fxtrade.oanda.com"
    practice_stream: str = "https://stream-fxpractice.oanda.com"
    live_stream: str = "https://stream-fxtrade.oanda.com"
    env: Literal["practice", "live"] = "practice"
    credentials_path: str = "res.json"
    account: str = "primary"
    timeout: float = 10.0

    @property
    def base(self) -> str:
        return self.practice_base if self.env == "practice" else self.live_base

    @property
    def stream_base(self) -> str:
        return self.practice_stream if self.env == "practice" else self.live_stream

class StreamGroup(BaseModel):
    account: str | None = None  # falls back to oanda.account
    instruments: list[str] = Field(min_length=1)

class StreamSettings(BaseModel):
    groups: list[StreamGroup] = Field(default_factory=lambda: [StreamGroup(instruments=["EUR_USD"])])
    snapshot: bool = True
    include_home_conversions: bool = False
    sink: Literal["console", "database"] = "console"
    persistence_required: bool = True
    compact: bool = False
    read_timeout: float = 30.0

class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///runs/ticks.db"
    pool_size: int = 5
    echo: bool = False
    create_tables: bool = False
    schema_name: str | None = None
    price_table: str = "price_ticks"
    heartbeat_table: str = "heartbeats"

class TelemetryLocal(BaseModel):
    path: str = "runs/traces"

class TelemetrySettings(BaseModel):
    tracing_provider: str = "none"   # none | local_jsonl | local_csv | local_both
    local: TelemetryLocal = Field(default_factory=TelemetryLocal)
    redact_keys: list[str] = Field(default_factory=lambda: ["token", "Authorization"])

class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: Literal["console", "json"] = "console"
    file_path: str | None = None
    rotation: str = "10 MB"
    retention: str = "14 days"

class Settings(BaseModel):
    oanda: OandaSettings = Field(default_factory=OandaSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _expand_env(content: str) -> str:
    # Allow ${VAR} expansion from OS env vars
    return os.path.expandvars(content)


def load_settings(path: Path | str | None = None) -> Settings:
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG
    with cfg_path.open("r", encoding="utf-8") as f:
        raw = _expand_env(f.read())
    data: dict[str, Any] = yaml.safe_load(raw) or {}

    # Resolve OANDA env
    oanda = data.setdefault("oanda", {}) or {}
    data["oanda"] = oanda
    env = os.getenv("OANDA_ENV") or oanda.get("env") or "practice"
    oanda["env"] = env.lower()

    return Settings(**data)
