# src/minirt/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_LOADED = False


def load_dotenv_if_present(dotenv_path: Optional[str] = None, *, force: bool = False) -> bool:
    """
    Best-effort .env loader.

    - Deterministic: loads once per process (unless force=True).
    - Path rules:
        1) If dotenv_path arg provided, use it.
        2) Else if MINIRT_DOTENV_PATH is set, use that.
        3) Else default to ".env" in current working directory.
    - Never overrides variables already present in the environment.

    Returns True if a dotenv file was found AND loaded, else False.
    """
    global _LOADED
    if _LOADED and not force:
        return False
    _LOADED = True

    path = Path(dotenv_path or os.getenv("MINIRT_DOTENV_PATH", ".env")).expanduser()
    if not path.is_file():
        return False

    load_dotenv(dotenv_path=str(path), override=False)
    return True
