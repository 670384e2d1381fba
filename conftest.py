"""Global pytest configuration."""

import os

# Settings read DATABASE_URL at import time; tests build their own engines
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
