"""
factorshot.services.roster_service — Bulk roster import from CSV
=================================================================

Accepted format (header row required, extra columns ignored)::

    email,group[,name][,lastname]

Each data row either updates the user with that email (group always, name
and lastname only when the column exists) or provisions a new student with
no Google identity yet.  The identity is attached on that user's first login
(see :mod:`factorshot.services.account_service`).
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import Engine, select

from factorshot.constants import ROSTER_MAX_FIELD_LENGTH, ROSTER_REQUIRED_COLUMNS
from factorshot.database.engine import get_session
from factorshot.database.models import Role, User

logger = logging.getLogger(__name__)

_EMAIL = TypeAdapter(EmailStr)


class RosterFormatError(ValueError):
    """The file as a whole cannot be imported (bad header, empty file)."""


@dataclass(slots=True)
class ImportResult:
    created: int = 0
    updated: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "stats": {
                "created": self.created,
                "updated": self.updated,
                "errors": len(self.errors),
            },
            "error_details": list(self.errors),
        }


def _is_valid_email(value: str) -> bool:
    try:
        _EMAIL.validate_python(value)
    except ValidationError:
        return False
    return True


def _cell(row: list[str], index: int | None) -> str | None:
    if index is None or index >= len(row):
        return None
    return row[index].strip()


def _too_long(**cells: str | None) -> str | None:
    for column, value in cells.items():
        if value is not None and len(value) > ROSTER_MAX_FIELD_LENGTH:
            return column
    return None


def parse_header(header: list[str]) -> dict[str, int]:
    """Map column name → index; raise if a required column is missing."""
    columns = {name.strip().lstrip("\ufeff"): i for i, name in enumerate(header)}
    missing = [c for c in ROSTER_REQUIRED_COLUMNS if c not in columns]
    if missing:
        raise RosterFormatError(
            "CSV must contain the columns: " + ", ".join(ROSTER_REQUIRED_COLUMNS)
        )
    return columns


def import_roster(engine: Engine, text: str) -> ImportResult:
    """Create or update users from CSV *text*.

    Row-level problems are collected in :attr:`ImportResult.errors` as
    ``"Row N: …"`` (N is the 1-based line in the file) and do not stop the
    import.  All accepted rows are committed together.

    Raises
    ------
    RosterFormatError
        If the file is empty or the header lacks ``email`` / ``group``.
    """
    rows = list(csv.reader(io.StringIO(text)))
    if not rows:
        raise RosterFormatError("CSV file is empty")

    columns = parse_header(rows[0])
    email_idx = columns["email"]
    group_idx = columns["group"]
    name_idx = columns.get("name")
    lastname_idx = columns.get("lastname")

    result = ImportResult()
    with get_session(engine) as session:
        seen: dict[str, User] = {}
        for line_no, row in enumerate(rows[1:], start=2):
            if not row or (len(row) == 1 and not row[0].strip()):
                continue
            if len(row) <= max(email_idx, group_idx):
                result.errors.append(f"Row {line_no}: invalid format")
                continue

            email = row[email_idx].strip()
            group = row[group_idx].strip()
            name = _cell(row, name_idx)
            lastname = _cell(row, lastname_idx)

            if not email:
                continue
            if not _is_valid_email(email):
                result.errors.append(f"Row {line_no}: invalid email ({email})")
                continue
            column = _too_long(email=email, group=group, name=name, lastname=lastname)
            if column is not None:
                result.errors.append(
                    f"Row {line_no}: {column} longer than {ROSTER_MAX_FIELD_LENGTH} characters"
                )
                continue

            user = seen.get(email) or session.scalar(select(User).where(User.email == email))
            if user is not None:
                user.group = group
                if name is not None:
                    user.name = name
                if lastname is not None:
                    user.lastname = lastname
                result.updated += 1
            else:
                user = User(
                    email=email,
                    group=group,
                    role=Role.STUDENT,
                    google_id=None,
                    name=name,
                    lastname=lastname,
                )
                session.add(user)
                result.created += 1
            seen[email] = user

    logger.info(
        "Roster import: %d created, %d updated, %d errors",
        result.created, result.updated, len(result.errors),
    )
    return result
