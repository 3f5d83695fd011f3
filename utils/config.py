# utils/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

THIS_FILE = Path(__file__).resolve()
REPO_ROOT = THIS_FILE.parents[1]

DEFAULT_TIMEOUT: Tuple[float, float] = (5, 30)  # (connect, read) seconds


def load_env_if_opted_in() -> bool:
    """
    only load .env files when explicitly opted in
    - Set PYTHON_DOTENV_LOAD=1 to enable
    - PYTHON_DOTENV_DISABLE=1 always disables
    Returns True when files were loaded.
    """
    if os.getenv("PYTHON_DOTENV_DISABLE") == "1":
        return False
    if os.getenv("PYTHON_DOTENV_LOAD") != "1":
        return False

    # repo defaults, then local overrides
    load_dotenv(str(REPO_ROOT / ".env"))
    load_dotenv(str(REPO_ROOT / ".env.local"), override=True)
    return True


def parse_timeout(raw: Optional[str]) -> Tuple[float, float]:
    """Parse "connect,read" seconds (e.g. "10,300"); fall back to DEFAULT_TIMEOUT."""
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        parts = [float(p.strip()) for p in raw.split(",")]
    except ValueError:
        return DEFAULT_TIMEOUT
    if len(parts) == 2:
        return (parts[0], parts[1])
    if len(parts) == 1:
        return (parts[0], parts[0])
    return DEFAULT_TIMEOUT


@dataclass(frozen=True)
class Settings:
    canvas_url: Optional[str] = None
    canvas_token: Optional[str] = None
    http_timeout: Tuple[float, float] = DEFAULT_TIMEOUT
    store_path: Optional[Path] = None

    @property
    def has_canvas(self) -> bool:
        return bool(self.canvas_url and self.canvas_token)

    @classmethod
    def from_env(cls) -> "Settings":
        load_env_if_opted_in()
        store = os.getenv("MASSACTION_STORE")
        return cls(
            canvas_url=os.getenv("CANVAS_URL") or None,
            canvas_token=os.getenv("CANVAS_TOKEN") or None,
            http_timeout=parse_timeout(os.getenv("CANVAS_HTTP_TIMEOUT") or os.getenv("CANVAS_TIMEOUT")),
            store_path=Path(store) if store else None,
        )
