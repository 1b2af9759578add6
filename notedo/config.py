from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler


@dataclass(frozen=True)
class Settings:
    db_path: Path
    host: str
    port: int
    log_level: str
    seed_welcome: bool


def _default_db_path() -> Path:
    return Path.home() / ".notedo" / "notedo.db"


def load_settings() -> Settings:
    env_path = os.environ.get("NOTEDO_DB_PATH")
    db_path = Path(env_path) if env_path else _default_db_path()
    host = os.environ.get("NOTEDO_HOST", "127.0.0.1")
    port = int(os.environ.get("NOTEDO_PORT", "8000"))
    log_level = os.environ.get("NOTEDO_LOG_LEVEL", "INFO").upper()
    seed_welcome = os.environ.get("NOTEDO_SEED_WELCOME", "true").lower() == "true"
    return Settings(
        db_path=db_path,
        host=host,
        port=port,
        log_level=log_level,
        seed_welcome=seed_welcome,
    )


def configure_logging(level: str = "INFO") -> None:
    """Route the ``notedo`` loggers through a Rich console handler."""
    root = logging.getLogger("notedo")
    root.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False))
