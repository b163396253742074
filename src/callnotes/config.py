from __future__ import annotations

import os
from pathlib import Path

DEFAULT_HOME = Path.home() / ".callnotes"


def data_home() -> Path:
    return Path(os.environ.get("CALLNOTES_HOME") or DEFAULT_HOME).expanduser()


def db_path() -> Path:
    override = os.environ.get("CALLNOTES_DB")
    if override:
        return Path(override).expanduser()
    return data_home() / "callnotes.db"


DB_PATH = db_path()
