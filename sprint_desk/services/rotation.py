# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Sprint rotation logic — pure computation, no side effects.

Dates are whole calendar days (datetime.date), so daylight-saving shifts
cannot move a sprint boundary. "Today" is the UTC calendar date.
"""

import json
import math
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from sprint_desk.core.errors import ConfigError
from sprint_desk.models.domain import DATE_FORMAT, RotationConfig, SprintRecord

# Sprint ends on the second-week Friday of a Monday start.
SPRINT_END_OFFSET_DAYS = 11
DATE_RANGE_SEPARATOR = " – "


# ── Date helpers ──

def parse_ddmmyyyy(value: str) -> date:
    return datetime.strptime(value.strip(), DATE_FORMAT).date()


def format_ddmmyyyy(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def format_date_range(start: date, end: date) -> str:
    """Format as "dd/mm/yyyy – dd/mm/yyyy"."""
    return f"{format_ddmmyyyy(start)}{DATE_RANGE_SEPARATOR}{format_ddmmyyyy(end)}"


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


# ── Index arithmetic ──

def sprint_index_for_date(config: RotationConfig, when: date) -> int:
    """Index of the sprint containing `when`. Negative before the anchor."""
    if isinstance(when, datetime):
        when = when.astimezone(timezone.utc).date() if when.tzinfo else when.date()
    days_since_first = (when - config.first_sprint_start_date).days
    return days_since_first // config.sprint_length_days


def start_date(config: RotationConfig, index: int) -> date:
    return config.first_sprint_start_date + timedelta(
        days=index * config.sprint_length_days
    )


def end_date(config: RotationConfig, index: int) -> date:
    return start_date(config, index) + timedelta(days=SPRINT_END_OFFSET_DAYS)


def release_master_at(config: RotationConfig, index: int) -> str:
    roster = config.release_masters
    return roster[(config.release_master_index_at_first_sprint + index) % len(roster)]


def scrum_master_at(config: RotationConfig, index: int) -> str:
    roster = config.scrum_masters
    return roster[(config.scrum_master_index_at_first_sprint + index) % len(roster)]


# ── Sprint / release numbering ──

def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _numbered(first: float, index: int) -> float:
    major = math.floor(first)
    sequence_start = _round_half_up((first - major) * 1000)
    return major + (sequence_start + index) / 1000


def sprint_number(config: RotationConfig, index: int) -> float:
    """Sprint number, e.g. 1.164, 1.165 — major + (sequence + index)/1000."""
    return _numbered(config.first_sprint_number, index)


def release_number(config: RotationConfig, index: int) -> float:
    """Release number lags the sprint by one: sprint - 0.001."""
    return _numbered(config.first_sprint_number - 0.001, index)


def format_sprint_release(value: float) -> str:
    return f"{value:.3f}"


# ── Records ──

def record(config: RotationConfig, index: int, current: Optional[int] = None) -> SprintRecord:
    start = start_date(config, index)
    end = end_date(config, index)
    sprint = sprint_number(config, index)
    release = release_number(config, index)
    return SprintRecord(
        index=index,
        sprint=sprint,
        release=release,
        sprint_label=format_sprint_release(sprint),
        release_label=format_sprint_release(release),
        release_master=release_master_at(config, index),
        scrum_master=scrum_master_at(config, index),
        start_date=format_ddmmyyyy(start),
        end_date=format_ddmmyyyy(end),
        date_range=format_date_range(start, end),
        is_current=current is not None and index == current,
    )


def current_index(config: RotationConfig, today: Optional[date] = None) -> int:
    return sprint_index_for_date(config, today or today_utc())


def next_index(config: RotationConfig, today: Optional[date] = None) -> int:
    return current_index(config, today) + 1


def history(
    config: RotationConfig,
    past_count: int,
    future_count: int,
    today: Optional[date] = None,
) -> list[SprintRecord]:
    """Records for [current - past, current + future], newest first."""
    current = current_index(config, today)
    records = [
        record(config, i, current=current)
        for i in range(current - past_count, current + future_count + 1)
    ]
    records.sort(key=lambda r: r.sprint, reverse=True)
    return records


def validate(config: RotationConfig, from_index: int, count: int) -> None:
    """Raise ConfigError if one person holds both roles in the window."""
    for i in range(from_index, from_index + count):
        release_master = release_master_at(config, i)
        scrum_master = scrum_master_at(config, i)
        if release_master == scrum_master:
            raise ConfigError(
                f"Config invalid: same person ({release_master}) is Release Master "
                f"and Scrum Master for sprint index {i}. Reorder releaseMasters or "
                f"scrumMasters so they never clash."
            )


def load_rotation_config(path: str | Path) -> RotationConfig:
    """Read and parse the rotation JSON document. Raises ConfigError."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read rotation config {path}: {exc}") from exc
    try:
        return RotationConfig.model_validate(raw)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid rotation config {path}: {exc}") from exc
