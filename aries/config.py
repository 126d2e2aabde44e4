"""Configuration for the Aries server."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path

logger = logging.getLogger(__name__)

STORES = ("sqlite", "csv")

# dataclass field types are strings under postponed annotations
_CONVERTERS = {"str": str, "int": int, "float": float}


@dataclass
class AriesConfig:
    """Aries server configuration, loaded from a JSON file then env overrides."""

    host: str = "0.0.0.0"
    port: int = 8080

    # Registry persistence
    store: str = "sqlite"  # sqlite | csv
    data_dir: str = "./data"
    services_csv: str = "services.csv"

    # Timing (seconds)
    heartbeat_interval: float = 60.0
    probe_timeout: float = 2.0
    lookup_timeout: float = 10.0
    merge_slack: float = 2.0

    log_level: str = "INFO"

    @classmethod
    def load(cls, path: str | Path | None = None) -> AriesConfig:
        """Read *path* (if given and present) and overlay ``ARIES_*`` env vars."""
        config = cls()
        if path is not None:
            path = Path(path)
            if path.exists():
                with open(path) as f:
                    data = json.load(f)
                known = {f.name for f in fields(cls)}
                config = cls(**{k: v for k, v in data.items() if k in known})
            else:
                logger.warning("Config not found at %s, using defaults", path)
        config.apply_env()
        config.validate()
        return config

    def apply_env(self, environ: dict[str, str] | None = None) -> None:
        """Overlay ``ARIES_<FIELD>`` environment variables onto this config."""
        env = os.environ if environ is None else environ
        for f in fields(self):
            raw = env.get(f"ARIES_{f.name.upper()}")
            if raw is None:
                continue
            convert = _CONVERTERS[f.type]
            try:
                setattr(self, f.name, convert(raw))
            except ValueError as exc:
                raise ValueError(f"ARIES_{f.name.upper()}={raw!r}: {exc}") from exc

    def validate(self) -> None:
        if self.store not in STORES:
            raise ValueError(f"Unknown store '{self.store}'. Choose from: {list(STORES)}")
        for name in ("heartbeat_interval", "probe_timeout", "lookup_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.merge_slack < 0:
            raise ValueError("merge_slack must not be negative")

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir) / "aries.db"

    @property
    def csv_path(self) -> Path:
        path = Path(self.services_csv)
        return path if path.is_absolute() else Path(self.data_dir) / path
