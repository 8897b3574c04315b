from __future__ import annotations

import os
from pathlib import Path


def linkguard_home() -> Path:
    env = os.environ.get("LINKGUARD_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / ".linkguard").resolve()


def ensure_home() -> Path:
    home = linkguard_home()
    home.mkdir(parents=True, exist_ok=True)
    return home
