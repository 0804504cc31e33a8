# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Rotation lookups — who is Release Master / Scrum Master.
Loads the rotation config once, refuses to serve it if any sprint in the
look-ahead window gives both roles to one person, and re-checks each
range it renders on every lookup.
"""

from datetime import date
from typing import Any, Optional

from sprint_desk.core.config import settings
from sprint_desk.core.errors import CollaboratorError
from sprint_desk.core.logging import get_logger
from sprint_desk.metrics.prometheus import ROTATION_LOOKUPS
from sprint_desk.models.domain import RotationConfig, SprintRecord
from sprint_desk.repositories.sprint_repository import SprintRepository
from sprint_desk.services import rotation

logger = get_logger(__name__)

PLAN_LOOKUP_LIMIT = 100


class RotationService:
    """Business logic for the sprint duty rotation."""

    def __init__(
        self,
        sprint_repo: SprintRepository,
        config_path: Optional[str] = None,
        horizon: Optional[int] = None,
    ) -> None:
        self._sprints = sprint_repo
        self._config_path = config_path or settings.ROTATION_CONFIG_PATH
        self._horizon = horizon if horizon is not None else settings.ROTATION_VALIDATION_HORIZON
        self._config: Optional[RotationConfig] = None

    # ── Config ──

    def load(self, today: Optional[date] = None) -> RotationConfig:
        """Read and validate the config. Raises ConfigError."""
        config = rotation.load_rotation_config(self._config_path)
        self.use(config, today)
        logger.info(
            "Rotation config loaded: path=%s, release_masters=%d, scrum_masters=%d",
            self._config_path, len(config.release_masters), len(config.scrum_masters),
        )
        return config

    def use(self, config: RotationConfig, today: Optional[date] = None) -> None:
        """Validate and install an already-parsed config. Raises ConfigError."""
        current = rotation.current_index(config, today)
        rotation.validate(config, current, self._horizon)
        self._config = config

    @property
    def config(self) -> RotationConfig:
        if self._config is None:
            return self.load()
        return self._config

    # ── Queries ──
    # Every query re-checks the exact indices it serves, against today's date.

    def current(self, today: Optional[date] = None) -> SprintRecord:
        ROTATION_LOOKUPS.labels(view="current").inc()
        config = self.config
        index = rotation.current_index(config, today)
        rotation.validate(config, index, 1)
        return rotation.record(config, index, current=index)

    def next(self, today: Optional[date] = None) -> SprintRecord:
        ROTATION_LOOKUPS.labels(view="next").inc()
        config = self.config
        current = rotation.current_index(config, today)
        rotation.validate(config, current + 1, 1)
        return rotation.record(config, current + 1, current=current)

    def overview(self, today: Optional[date] = None) -> dict[str, SprintRecord]:
        return {"current": self.current(today), "next": self.next(today)}

    def sprint(self, index: int, today: Optional[date] = None) -> SprintRecord:
        ROTATION_LOOKUPS.labels(view="index").inc()
        config = self.config
        rotation.validate(config, index, 1)
        return rotation.record(config, index, current=rotation.current_index(config, today))

    def history(
        self,
        past: Optional[int] = None,
        future: Optional[int] = None,
        today: Optional[date] = None,
    ) -> dict[str, Any]:
        """Sprints around today, newest first, linked to saved capacity plans."""
        ROTATION_LOOKUPS.labels(view="history").inc()
        past = settings.HISTORY_PAST_SPRINTS if past is None else past
        future = settings.HISTORY_FUTURE_SPRINTS if future is None else future
        config = self.config
        current = rotation.current_index(config, today)
        rotation.validate(config, current - past, past + future + 1)
        records = rotation.history(config, past, future, today)

        linked = True
        try:
            plans = self._sprints.list_sprints(limit=PLAN_LOOKUP_LIMIT)
        except CollaboratorError as exc:
            logger.warning("Capacity plans unavailable for history: %s", exc)
            plans, linked = [], False

        for entry in records:
            plan = next((p for p in plans if entry.sprint_label in p.get("name", "")), None)
            if plan is not None:
                entry.capacity_plan_id = plan["id"]
        return {"sprints": records, "capacity_plans_linked": linked}
