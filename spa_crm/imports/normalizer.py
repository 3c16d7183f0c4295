from __future__ import annotations

import calendar
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterable, Mapping, NamedTuple

from spa_crm.db.models import ClientDraft, SkipReason, SkipRecord

# Spreadsheet serial day 0; serial 45000 is 2023-03-15.
EXCEL_EPOCH = datetime(1899, 12, 30)

_ISO_DATE = re.compile(r"(\d{4})[-/](\d{1,2})[-/](\d{1,2})")
_MONTH_DAY = re.compile(r"(\d{1,2})[-/](\d{1,2})")

NAME = "name"
PHONE = "phone"
BIRTH_DATE = "birth_date"
BRANCH = "branch"

DEFAULT_COLUMN_RULES: dict[str, tuple[str, ...]] = {
    NAME: ("name",),
    PHONE: ("phone", "mobile"),
    BIRTH_DATE: ("dob", "birth", "date"),
    BRANCH: ("branch",),
}


@dataclass(frozen=True)
class ColumnRules:
    """
    Role -> header substrings table used to find columns in arbitrary sheets.

    Matching is case-insensitive; for each role the first header (in sheet
    order) containing any of its substrings wins. A header may serve more
    than one role.
    """

    rules: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_COLUMN_RULES)
    )

    def resolve(self, headers: Iterable[str]) -> dict[str, str]:
        ordered = list(headers)
        resolved: dict[str, str] = {}
        for role, needles in self.rules.items():
            for header in ordered:
                lowered = header.lower()
                if any(needle in lowered for needle in needles):
                    resolved[role] = header
                    break
        return resolved


class BirthDate(NamedTuple):
    month: int
    day: int


def valid_birth_date(month: int, day: int) -> BirthDate | None:
    # Leap year so that 29 February stays a valid birthday
    if 1 <= month <= 12 and 1 <= day <= calendar.monthrange(2000, month)[1]:
        return BirthDate(month, day)
    return None


def parse_birth_date(value: Any) -> BirthDate | None:
    """
    Extract month and day of birth from a spreadsheet cell.

    Tries, in order: a numeric spreadsheet serial, a native date, an ISO-like
    `YYYY-M-D` / `YYYY/M/D` string and finally a bare `M-D` / `M/D` string.
    The year is discarded.
    """

    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            parsed = EXCEL_EPOCH + timedelta(days=value)
        except OverflowError:
            return None
        return BirthDate(parsed.month, parsed.day)

    if isinstance(value, (date, datetime)):
        return BirthDate(value.month, value.day)

    text = str(value).strip()
    if not text:
        return None

    match = _ISO_DATE.search(text)
    if match:
        return valid_birth_date(int(match.group(2)), int(match.group(3)))

    match = _MONTH_DAY.search(text)
    if match:
        return valid_birth_date(int(match.group(1)), int(match.group(2)))
    return None


def synthetic_birth_date(birth: BirthDate, today: date) -> date:
    """
    Full date in the current year, kept for display compatibility only.
    """

    try:
        return date(today.year, birth.month, birth.day)
    except ValueError:
        # 29 February outside a leap year
        return date(today.year, birth.month, birth.day - 1)


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value).strip()


class RowNormalizer:
    """
    Maps one raw spreadsheet row onto a canonical client draft.
    """

    def __init__(
        self,
        rules: ColumnRules | None = None,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._rules = rules or ColumnRules()
        self._today = today

    def normalize(
        self,
        row: Mapping[str, Any],
        row_number: int,
        default_branch: str = "",
    ) -> ClientDraft | SkipRecord:
        columns = self._rules.resolve(row.keys())

        def value_of(role: str) -> Any:
            header = columns.get(role)
            return row.get(header) if header is not None else None

        name = cell_text(value_of(NAME))
        phone_number = cell_text(value_of(PHONE))
        birth = parse_birth_date(value_of(BIRTH_DATE))

        if not name or not phone_number or birth is None:
            return SkipRecord(
                row=row_number,
                reason=SkipReason.MISSING_REQUIRED_DATA,
                message="Missing required data (Name, Phone Number, or Date of Birth)",
                name=name or None,
                phone_number=phone_number or None,
            )

        branch = cell_text(value_of(BRANCH)) or default_branch.strip()
        if not branch:
            return SkipRecord(
                row=row_number,
                reason=SkipReason.MISSING_BRANCH,
                message=(
                    "Missing branch. Either include a Branch column in the file "
                    "or set a default branch."
                ),
                name=name,
                phone_number=phone_number,
            )

        return ClientDraft(
            name=name,
            phone_number=phone_number,
            birth_month=birth.month,
            birth_day=birth.day,
            date_of_birth=synthetic_birth_date(birth, self._today()),
            branch=branch,
        )
