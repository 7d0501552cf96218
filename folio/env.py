from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

TRUTHY = {"1", "true", "yes", "on"}


def read_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value not in {None, ""}:
        return value

    file_var = os.getenv(f"{name}_FILE")
    if not file_var:
        return default

    try:
        content = Path(file_var).read_text(encoding="utf-8")
    except OSError:
        return default
    return content.rstrip("\r\n")


def read_env_int(name: str, default: int) -> int:
    raw = read_env(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def read_env_flag(name: str) -> bool:
    raw = read_env(name)
    return bool(raw) and raw.strip().lower() in TRUTHY
