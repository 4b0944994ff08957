"""
factorshot.constants — Shared Game Limits
==========================================

Single source of truth for the bounds enforced at the API boundary.
Import from here instead of repeating literals in schemas and tests.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Session limits
# ---------------------------------------------------------------------------
MAX_DURATION_SECONDS = 600          # Anything longer is treated as tampered
CANVAS_MIN = 1
CANVAS_MAX = 10_000
MIN_LEVEL = 1

# ---------------------------------------------------------------------------
# Shot limits
# ---------------------------------------------------------------------------
# The playfield is fixed; it does not follow the session's recorded canvas.
PLAYFIELD_WIDTH = 1200
PLAYFIELD_HEIGHT = 800
FACTOR_MIN = 1
FACTOR_MAX = 12
ANSWER_MIN = 0
ANSWER_MAX = FACTOR_MAX * FACTOR_MAX

# ---------------------------------------------------------------------------
# Roster upload
# ---------------------------------------------------------------------------
ROSTER_MAX_BYTES = 2 * 1024 * 1024
ROSTER_ALLOWED_EXTENSIONS = frozenset({".csv", ".txt"})
ROSTER_REQUIRED_COLUMNS = ("email", "group")
ROSTER_MAX_FIELD_LENGTH = 255       # Width of users.email / group / name / lastname
