# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false

"""
Tests for capacity maths and CapacityService (plans, next sprint, roster merge).
"""

import json
from datetime import date
from unittest.mock import patch

import pytest

from sprint_desk.core.config import settings
from sprint_desk.core.errors import CollaboratorError, ConfigError, RoundStateError, ValidationError
from sprint_desk.models.domain import (
    CapacityConstants,
    SprintEffort,
    SprintPlan,
    SprintRecord,
    TeamMember,
)
from sprint_desk.repositories.record_store import InMemoryRecordStore
from sprint_desk.repositories.sprint_repository import (
    CAPACITIES,
    SPRINTS,
    SprintRepository,
    member_from_record,
)
from sprint_desk.services import capacity
from sprint_desk.services.capacity_service import CapacityService, load_team, merge_roster
from sprint_desk.services.rotation_service import RotationService


def engineer(name="Zul", **kw):
    return TeamMember(name=name, role="Engineer", **kw)


def qa(name="Anessa", **kw):
    return TeamMember(name=name, role="QA", **kw)


# ============================================
# Per-member maths
# ============================================
class TestMemberCapacity:
    def test_worked_example(self):
        member = engineer(leave_days=1)
        shared = capacity.shared_deduction(SprintEffort(lead_effort_hours=8, support_effort_hours=8))
        assert shared == 4
        assert capacity.net_capacity(member, shared) == 14  # 20 - 2 - 0 - 4

    def test_holidays_count_like_leave(self):
        assert capacity.holiday_points(2) == 4
        assert capacity.leave_points(2.5) == 5

    def test_never_negative(self):
        member = engineer(full_capacity_points=2, leave_days=5)
        assert capacity.net_capacity(member, 4) == 0

    def test_constants_are_injectable(self):
        constants = CapacityConstants(days_to_points=1, hours_to_points=0.5)
        member = engineer(leave_days=2)
        shared = capacity.shared_deduction(SprintEffort(), constants)
        assert shared == 8
        assert capacity.net_capacity(member, shared, constants) == 10

    def test_negative_inputs_rejected(self):
        with pytest.raises(ValueError):
            TeamMember(name="Zul", leave_days=-1)

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            TeamMember(name="Zul", role="Designer")

    def test_working_days(self):
        assert capacity.working_days(engineer(leave_days=2, public_holiday_days=1)) == 7

    def test_working_days_follow_configured_sprint_length(self):
        with patch.object(settings, "SPRINT_WORKING_DAYS", 12):
            assert capacity.working_days(engineer(leave_days=2)) == 10
        assert capacity.working_days(engineer(), sprint_days=5) == 5


# ============================================
# Roll-ups
# ============================================
class TestSummary:
    def test_role_total_filters_by_role(self):
        members = [engineer(), engineer("Eizlan", leave_days=2), qa()]
        assert capacity.role_total(members, "Engineer", 4) == 16 + 12
        assert capacity.role_total(members, "QA", 4) == 16
        assert capacity.role_total(members, "PM", 4) == 0

    def test_effort_total(self):
        effort = SprintEffort(release_effort_points=3, support_effort_points_input=1)
        assert capacity.effort_total(effort) == 3 + 2 + 1 + 4

    def test_summarize(self):
        summary = capacity.summarize([engineer(leave_days=1), qa()], SprintEffort())
        assert summary.dev_capacity == 14
        assert summary.qa_capacity == 16
        assert summary.effort_total == 6
        assert summary.current_dev_capacity == 8
        assert summary.min_sprint_capacity_dev == pytest.approx(6.4)
        assert summary.min_sprint_capacity_qa == pytest.approx(16)
        assert summary.total_planned == pytest.approx(22.4)
        assert summary.max_planned == pytest.approx(26.88)
        assert summary.code_freeze_commitment == pytest.approx(17.92)
        assert [m.net_capacity for m in summary.members] == [14, 16]

    def test_current_dev_not_clamped(self):
        summary = capacity.summarize([engineer(full_capacity_points=4)], SprintEffort())
        assert summary.current_dev_capacity == -6

    def test_empty_roster(self):
        summary = capacity.summarize([], SprintEffort())
        assert summary.dev_capacity == 0
        assert summary.members == []


class TestFactorBounds:
    @pytest.mark.parametrize("percent", [10, 55, 100])
    def test_in_range(self, percent):
        assert capacity.check_factor(percent) == percent

    @pytest.mark.parametrize("percent", [0, 9.9, 100.5, -20])
    def test_out_of_range_rejected(self, percent):
        with pytest.raises(ValidationError):
            capacity.check_factor(percent)

    def test_summarize_rejects_before_computing(self):
        with pytest.raises(ValidationError, match="qa_capacity_factor"):
            capacity.summarize([qa()], SprintEffort(qa_capacity_factor=150))

    def test_min_sprint_capacity(self):
        assert capacity.min_sprint_capacity(20, 50) == 10
        with pytest.raises(ValidationError):
            capacity.min_sprint_capacity(20, 5)


# ============================================
# Sprint naming
# ============================================
class TestSprintNaming:
    def test_next_name(self):
        assert capacity.next_sprint_name("Sprint 1.194.0") == "Sprint 1.195.0"

    def test_next_name_without_patch(self):
        assert capacity.next_sprint_name("Sprint 1.194") == "Sprint 1.195.0"

    def test_next_name_without_version(self):
        assert capacity.next_sprint_name("Kickoff") == "Kickoff (Next)"

    def test_default_name(self):
        record = SprintRecord(
            index=0, sprint=1.164, release=1.163, sprint_label="1.164", release_label="1.163",
            release_master="A", scrum_master="X", start_date="06/01/2025",
            end_date="17/01/2025", date_range="06/01/2025 – 17/01/2025",
        )
        assert capacity.default_sprint_name(record) == "Sprint 1.164.0"
        assert capacity.default_sprint_name(None) == "Sprint"


# ============================================
# Records and roster
# ============================================
class TestRecordMapping:
    def test_member_defaults(self):
        member = member_from_record({"id": "c1", "name": "Zul", "role": "", "leave_days": None})
        assert member.role == "Engineer"
        assert member.leave_days == 0
        assert member.full_capacity_points == 20

    def test_zero_is_kept(self):
        member = member_from_record({"id": "c1", "name": "Zul", "full_capacity_points": 0})
        assert member.full_capacity_points == 0

    def test_duplicate_member_names_rejected(self):
        with pytest.raises(ValueError):
            SprintPlan(name="Sprint", members=[engineer(), engineer()])


class TestRoster:
    def test_load_team(self, tmp_path):
        path = tmp_path / "team.json"
        path.write_text(json.dumps([{"name": "Zul", "role": "Engineer"}, {"name": "Rubee", "role": "QA"}]))
        team = load_team(str(path), 18)
        assert [(m.name, m.role, m.full_capacity_points) for m in team] == [
            ("Zul", "Engineer", 18), ("Rubee", "QA", 18),
        ]

    def test_missing_team_file_is_empty(self, tmp_path):
        assert load_team(str(tmp_path / "none.json"), 20) == []

    def test_bad_team_file(self, tmp_path):
        path = tmp_path / "team.json"
        path.write_text(json.dumps([{"role": "QA"}]))
        with pytest.raises(ConfigError):
            load_team(str(path), 20)

    def test_merge_roster(self):
        defaults = [engineer("Zul"), qa("Anessa")]
        stored = [qa("Anessa", leave_days=3, id="c2"), engineer("Guest", id="c9")]
        merged = merge_roster(defaults, stored)
        assert [m.name for m in merged] == ["Zul", "Anessa", "Guest"]
        assert merged[1].leave_days == 3 and merged[1].id == "c2"


# ============================================
# CapacityService
# ============================================
@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def service(store, tmp_path):
    rotation_path = tmp_path / "rotation.json"
    rotation_path.write_text(json.dumps({
        "firstSprintNumber": 1.164,
        "firstSprintStartDate": "06/01/2025",
        "releaseMasters": ["Zul", "Eizlan", "Minker"],
        "scrumMasters": ["Anessa", "Rubee"],
    }))
    team_path = tmp_path / "team.json"
    team_path.write_text(json.dumps([
        {"name": "Zul", "role": "Engineer"},
        {"name": "Eizlan", "role": "Engineer"},
        {"name": "Anessa", "role": "QA"},
    ]))
    repo = SprintRepository(store)
    rotation_service = RotationService(repo, config_path=str(rotation_path))
    return CapacityService(repo, rotation_service, team_config_path=str(team_path))


class TestCapacityService:
    def test_draft_when_nothing_saved(self, service):
        with patch("sprint_desk.services.rotation.today_utc", return_value=date(2025, 1, 20)):
            view = service.latest_plan()
        assert view["plan"].id is None
        assert view["plan"].name == "Sprint 1.165.0"
        assert [m.name for m in view["plan"].members] == ["Zul", "Eizlan", "Anessa"]
        assert view["read_only"] is False

    def test_calculate(self, service):
        summary = service.calculate([engineer(leave_days=1)], SprintEffort())
        assert summary.dev_capacity == 14

    def test_create_plan(self, service, store):
        plan = SprintPlan(name="Sprint 1.195.0", members=[engineer(leave_days=2), qa()])
        view = service.save_plan(plan)
        saved = view["plan"]
        assert saved.id
        assert saved.start_date and saved.end_date
        assert all(m.id for m in saved.members if m.name in ("Zul", "Anessa"))
        rows = store.list(CAPACITIES, filters={"sprint": saved.id})
        assert {r["name"]: r["working_days"] for r in rows} == {"Zul": 8, "Anessa": 10}
        assert view["summary"].dev_capacity > 0

    def test_update_plan_does_not_duplicate_rows(self, service, store):
        saved = service.save_plan(SprintPlan(name="Sprint 1.195.0", members=[engineer(), qa()]))["plan"]
        stored = [m for m in saved.members if m.id]
        changed = [m.model_copy(update={"leave_days": 1}) for m in stored]
        service.save_plan(saved.model_copy(update={"members": changed}))
        rows = store.list(CAPACITIES, filters={"sprint": saved.id})
        assert len(rows) == 2
        assert all(r["leave_days"] == 1 for r in rows)

    def test_members_copied_from_another_plan_leave_it_intact(self, service, store):
        source = service.save_plan(SprintPlan(
            name="Sprint 1.194.0", members=[TeamMember(name="Guest", role="Engineer")],
        ))["plan"]
        target = service.save_plan(SprintPlan(name="Sprint 1.195.0", members=source.members))["plan"]
        source_rows = store.list(CAPACITIES, filters={"sprint": source.id})
        target_rows = store.list(CAPACITIES, filters={"sprint": target.id})
        assert [r["name"] for r in source_rows] == ["Guest"]
        assert len(target_rows) == len(source.members)
        assert not {r["id"] for r in source_rows} & {r["id"] for r in target_rows}

    def test_member_without_id_updates_row_with_same_name(self, service, store):
        saved = service.save_plan(SprintPlan(
            name="Sprint 1.195.0", members=[TeamMember(name="Guest", role="Engineer")],
        ))["plan"]
        again = SprintPlan(id=saved.id, name=saved.name,
                           members=[TeamMember(name="Guest", role="Engineer", leave_days=2)])
        service.save_plan(again)
        rows = store.list(CAPACITIES, filters={"sprint": saved.id})
        assert [(r["name"], r["leave_days"]) for r in rows] == [("Guest", 2)]
        reloaded = service.get_plan(saved.id)["plan"]
        assert [m.name for m in reloaded.members].count("Guest") == 1

    def test_bad_factor_writes_nothing(self, service, store):
        plan = SprintPlan(name="Sprint 1.195.0", effort=SprintEffort(dev_capacity_factor=5))
        with pytest.raises(ValidationError):
            service.save_plan(plan)
        assert store.count(SPRINTS) == 0

    def test_unknown_plan(self, service):
        with pytest.raises(KeyError):
            service.get_plan("missing")

    def test_list_plans_newest_first(self, service):
        service.save_plan(SprintPlan(name="Sprint 1.194.0"))
        service.save_plan(SprintPlan(name="Sprint 1.195.0"))
        assert [p["name"] for p in service.list_plans()] == ["Sprint 1.195.0", "Sprint 1.194.0"]

    def test_start_next_sprint(self, service, store):
        saved = service.save_plan(SprintPlan(
            name="Sprint 1.194.0",
            status="active",
            members=[engineer(leave_days=3, public_holiday_days=1), qa(full_capacity_points=15)],
        ))["plan"]
        view = service.start_next_sprint(saved.id)
        new_plan = view["plan"]
        assert new_plan.name == "Sprint 1.195.0"
        assert new_plan.status == "active"
        assert new_plan.id != saved.id
        by_name = {m.name: m for m in new_plan.members}
        assert by_name["Zul"].leave_days == 0
        assert by_name["Zul"].public_holiday_days == 0
        assert by_name["Anessa"].full_capacity_points == 15
        assert store.get(SPRINTS, saved.id)["status"] == "finished"

    def test_finished_plan_is_read_only(self, service):
        saved = service.save_plan(SprintPlan(name="Sprint 1.194.0"))["plan"]
        service.start_next_sprint(saved.id)
        old = service.get_plan(saved.id)
        assert old["read_only"] is True
        with pytest.raises(RoundStateError):
            service.save_plan(old["plan"])
        with pytest.raises(RoundStateError):
            service.start_next_sprint(saved.id)

    def test_store_failure_propagates(self, service):
        with patch.object(SprintRepository, "create_sprint",
                          side_effect=CollaboratorError("create", "sprints", "down")):
            with pytest.raises(CollaboratorError):
                service.save_plan(SprintPlan(name="Sprint 1.195.0"))
