"""
factorshot.engine.stats — Derived Shot & Score Statistics
==========================================================

Pure functions — no DB access.  Every read path (finish response, session
list, session detail, admin views, CSV export) goes through these helpers so
the numbers agree everywhere.

Accuracy::

    accuracy = round(correct / total * 100, 2)      # 0 when total == 0

Rounding is half-up on the exact ratio, so ``2/3`` is ``66.67`` and ``1/8``
is ``12.5`` regardless of float representation.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

__all__ = [
    "ShotStats",
    "ScoreSummary",
    "PlayerSummary",
    "compute_accuracy",
    "round_half_up",
    "summarize_scores",
    "summarize_player",
]


class _SessionLike(Protocol):
    started_at: datetime
    finished_at: datetime | None
    final_score: int
    duration_seconds: int


def round_half_up(numerator: int | float, denominator: int = 1, places: int = 2) -> float:
    """Divide and round half-up to *places* decimals."""
    quantum = Decimal(1).scaleb(-places)
    value = Decimal(str(numerator)) / Decimal(denominator)
    return float(value.quantize(quantum, rounding=ROUND_HALF_UP))


def compute_accuracy(total_shots: int, correct_shots: int) -> float:
    """Percentage of correct shots, 2 decimals, ``0.0`` for an empty session."""
    if total_shots <= 0:
        return 0.0
    return round_half_up(correct_shots * 100, total_shots, places=2)


# ---------------------------------------------------------------------------
# Per-session shot statistics
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ShotStats:
    """Shot counters for one session."""

    total_shots: int = 0
    correct_shots: int = 0

    @property
    def wrong_shots(self) -> int:
        return self.total_shots - self.correct_shots

    @property
    def accuracy(self) -> float:
        return compute_accuracy(self.total_shots, self.correct_shots)

    @classmethod
    def from_flags(cls, flags: Iterable[bool]) -> ShotStats:
        """Build stats from an iterable of ``is_correct`` values."""
        total = correct = 0
        for flag in flags:
            total += 1
            if flag:
                correct += 1
        return cls(total_shots=total, correct_shots=correct)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_shots": self.total_shots,
            "correct_shots": self.correct_shots,
            "wrong_shots": self.wrong_shots,
            "accuracy": self.accuracy,
        }


# ---------------------------------------------------------------------------
# Aggregates over many sessions (finished sessions only)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ScoreSummary:
    """Per-user aggregate shown in user lists and exports."""

    avg_score: float | None = None
    best_score: int | None = None
    last_played_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "avg_score": self.avg_score,
            "best_score": self.best_score,
            "last_played_at": (
                self.last_played_at.isoformat() if self.last_played_at else None
            ),
        }


def summarize_scores(sessions: Iterable[_SessionLike]) -> ScoreSummary:
    """Average / best score and last play time over *finished* sessions.

    Returns an all-``None`` summary when there are no finished sessions.
    """
    finished = [s for s in sessions if s.finished_at is not None]
    if not finished:
        return ScoreSummary()

    scores = [s.final_score for s in finished]
    latest = max(finished, key=lambda s: s.started_at)
    return ScoreSummary(
        avg_score=round_half_up(sum(scores), len(scores), places=1),
        best_score=max(scores),
        last_played_at=latest.started_at,
    )


@dataclass(frozen=True, slots=True)
class PlayerSummary:
    """Summary block of the admin per-user session view."""

    total_sessions: int = 0
    avg_score: float = 0.0
    best_score: int = 0
    total_playtime_minutes: float = 0.0
    first_session: datetime | None = None
    last_session: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_sessions": self.total_sessions,
            "avg_score": self.avg_score,
            "best_score": self.best_score,
            "total_playtime_minutes": self.total_playtime_minutes,
            "first_session": self.first_session.isoformat() if self.first_session else None,
            "last_session": self.last_session.isoformat() if self.last_session else None,
        }


def summarize_player(sessions: Iterable[_SessionLike]) -> PlayerSummary:
    """Totals over finished sessions; zeros (not ``None``) when there are none."""
    finished = [s for s in sessions if s.finished_at is not None]
    if not finished:
        return PlayerSummary()

    scores = summarize_scores(finished)
    starts = [s.started_at for s in finished]
    return PlayerSummary(
        total_sessions=len(finished),
        avg_score=scores.avg_score or 0.0,
        best_score=scores.best_score or 0,
        total_playtime_minutes=round_half_up(
            sum(s.duration_seconds for s in finished), 60, places=1
        ),
        first_session=min(starts),
        last_session=max(starts),
    )
