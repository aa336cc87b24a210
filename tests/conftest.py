"""Root conftest — shared test configuration."""

import os

# Settings are read at import time by kinstone.main; never point tests at a real database
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("LOG_FORMAT", "text")
