# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Capacity maths — pure computation, no side effects.
Every function takes plain values; nothing here reads the store.
"""

import re
from typing import Iterable, Optional

from sprint_desk.core.config import settings
from sprint_desk.core.errors import ValidationError
from sprint_desk.models.domain import (
    ROLE_ENGINEER,
    ROLE_QA,
    CapacityConstants,
    CapacitySummary,
    MemberCapacity,
    SprintEffort,
    SprintRecord,
    TeamMember,
)

_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


def capacity_constants() -> CapacityConstants:
    """Constants as configured through the environment."""
    return CapacityConstants(
        hours_to_points=settings.HOURS_TO_POINTS,
        days_to_points=settings.DAYS_TO_POINTS,
        buffer_factor=settings.BUFFER_FACTOR,
        code_freeze_factor=settings.CODE_FREEZE_FACTOR,
        factor_min=settings.FACTOR_MIN,
        factor_max=settings.FACTOR_MAX,
    )


DEFAULT_CONSTANTS = CapacityConstants()


# ── Per-member ──

def leave_points(days: float, constants: CapacityConstants = DEFAULT_CONSTANTS) -> float:
    return days * constants.days_to_points


def holiday_points(days: float, constants: CapacityConstants = DEFAULT_CONSTANTS) -> float:
    return days * constants.days_to_points


def shared_deduction(
    effort: SprintEffort, constants: CapacityConstants = DEFAULT_CONSTANTS
) -> float:
    """Lead + support hours in points, deducted from every member."""
    return (effort.lead_effort_hours + effort.support_effort_hours) * constants.hours_to_points


def net_capacity(
    member: TeamMember,
    shared: float,
    constants: CapacityConstants = DEFAULT_CONSTANTS,
) -> float:
    """Full capacity minus leave, holidays and shared overhead, floored at 0."""
    remaining = (
        member.full_capacity_points
        - leave_points(member.leave_days, constants)
        - holiday_points(member.public_holiday_days, constants)
        - shared
    )
    return max(0.0, remaining)


# ── Roll-ups ──

def role_total(
    members: Iterable[TeamMember],
    role: str,
    shared: float,
    constants: CapacityConstants = DEFAULT_CONSTANTS,
) -> float:
    return sum(net_capacity(m, shared, constants) for m in members if m.role == role)


def effort_total(
    effort: SprintEffort, constants: CapacityConstants = DEFAULT_CONSTANTS
) -> float:
    return (
        effort.release_effort_points
        + effort.lead_effort_points_input
        + effort.support_effort_points_input
        + shared_deduction(effort, constants)
    )


def check_factor(
    percent: float,
    constants: CapacityConstants = DEFAULT_CONSTANTS,
    field: str = "capacity factor",
) -> float:
    """Reject working-capacity percentages outside the configured bounds."""
    if not constants.factor_min <= percent <= constants.factor_max:
        raise ValidationError(
            f"{field} must be between {constants.factor_min:g} and "
            f"{constants.factor_max:g} percent, got {percent:g}"
        )
    return percent


def min_sprint_capacity(
    role_capacity: float,
    factor_percent: float,
    constants: CapacityConstants = DEFAULT_CONSTANTS,
) -> float:
    check_factor(factor_percent, constants)
    return role_capacity * factor_percent / 100


def summarize(
    members: list[TeamMember],
    effort: SprintEffort,
    constants: CapacityConstants = DEFAULT_CONSTANTS,
) -> CapacitySummary:
    """Full capacity breakdown for one sprint. Raises ValidationError."""
    check_factor(effort.dev_capacity_factor, constants, "dev_capacity_factor")
    check_factor(effort.qa_capacity_factor, constants, "qa_capacity_factor")

    shared = shared_deduction(effort, constants)
    breakdown = [
        MemberCapacity(
            name=m.name,
            role=m.role,
            leave_points=leave_points(m.leave_days, constants),
            holiday_points=holiday_points(m.public_holiday_days, constants),
            shared_deduction=shared,
            net_capacity=net_capacity(m, shared, constants),
        )
        for m in members
    ]

    dev_capacity = role_total(members, ROLE_ENGINEER, shared, constants)
    qa_capacity = role_total(members, ROLE_QA, shared, constants)
    team_effort = effort_total(effort, constants)
    current_dev = dev_capacity - team_effort

    min_dev = min_sprint_capacity(current_dev, effort.dev_capacity_factor, constants)
    min_qa = min_sprint_capacity(qa_capacity, effort.qa_capacity_factor, constants)
    total_planned = min_dev + min_qa

    return CapacitySummary(
        members=breakdown,
        shared_deduction=shared,
        effort_total=team_effort,
        dev_capacity=dev_capacity,
        qa_capacity=qa_capacity,
        current_dev_capacity=current_dev,
        min_sprint_capacity_dev=min_dev,
        min_sprint_capacity_qa=min_qa,
        total_planned=total_planned,
        max_planned=total_planned * constants.buffer_factor,
        code_freeze_commitment=total_planned * constants.code_freeze_factor,
    )


def working_days(member: TeamMember, sprint_days: Optional[int] = None) -> float:
    if sprint_days is None:
        sprint_days = settings.SPRINT_WORKING_DAYS
    return sprint_days - member.leave_days - member.public_holiday_days


# ── Sprint naming ──

def default_sprint_name(current: Optional[SprintRecord]) -> str:
    """"Sprint 1.195.0" for the sprint the rotation says is current."""
    if current is None:
        return "Sprint"
    return f"Sprint {current.sprint_label}.0"


def next_sprint_name(name: str) -> str:
    """Bump the minor part: "Sprint 1.194.0" -> "Sprint 1.195.0"."""
    match = _VERSION_RE.search(name)
    if not match:
        return f"{name} (Next)"
    major = int(match.group(1))
    minor = int(match.group(2))
    patch = int(match.group(3)) if match.group(3) else 0
    return f"Sprint {major}.{minor + 1}.{patch}"
