# File: coordinator.py
"""Coordinator for the RoutineTracker integration.

Owns the in-memory document loaded by the storage manager, resolves roles, and
wires the completion, goal and check-in managers together. Nothing polls: the
completion history only changes through managers, which push updates.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from . import const
from .engines import EntityNotFound, VisibilityEngine
from .managers import CheckinManager, CompletionManager, GoalManager

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .storage_manager import RoutineTrackerStorageManager
    from .type_defs import RoleContext


class RoutineTrackerCoordinator(DataUpdateCoordinator):
    """Coordinator for RoutineTracker integration.

    Manages data primarily using internal_id for entities.
    """

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        storage_manager: RoutineTrackerStorageManager,
    ) -> None:
        """Initialize the RoutineTrackerCoordinator."""
        super().__init__(
            hass,
            const.LOGGER,
            config_entry=config_entry,
            name=f"{const.DOMAIN}{const.COORDINATOR_SUFFIX}",
            update_interval=None,
        )
        self.storage_manager = storage_manager
        self._data: dict[str, Any] = {}

        self.completion_manager = CompletionManager(hass, self)
        self.goal_manager = GoalManager(hass, self)
        self.checkin_manager = CheckinManager(hass, self)

    # -------------------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------------------

    async def _async_update_data(self) -> dict[str, Any]:
        """Return the current in-memory document (no polling source)."""
        return self._data

    async def async_config_entry_first_refresh(self) -> None:
        """Load from storage, then set up managers."""
        self._data = self.storage_manager.get_data()
        await self.completion_manager.async_setup()
        await self.goal_manager.async_setup()
        await self.checkin_manager.async_setup()
        await super().async_config_entry_first_refresh()
        const.LOGGER.debug(
            "DEBUG: Coordinator loaded %s routines, %s tasks, %s goals",
            len(self.routines_data),
            len(self.tasks_data),
            len(self.goals_data),
        )

    # -------------------------------------------------------------------------------------
    # Options
    # -------------------------------------------------------------------------------------

    @property
    def enforce_undo_window(self) -> bool:
        """Return whether undo is refused for completions before the current window."""
        return self.config_entry.options.get(
            const.CONF_ENFORCE_UNDO_WINDOW, const.DEFAULT_ENFORCE_UNDO_WINDOW
        )

    @property
    def mutation_timeout(self) -> float:
        """Return the bulk check-in mutation timeout in seconds."""
        return float(
            self.config_entry.options.get(
                const.CONF_MUTATION_TIMEOUT, const.DEFAULT_MUTATION_TIMEOUT
            )
        )

    @property
    def streak_lookback(self) -> int:
        """Return the default streak lookback (windows)."""
        return int(
            self.config_entry.options.get(
                const.CONF_STREAK_LOOKBACK, const.DEFAULT_STREAK_LOOKBACK
            )
        )

    # -------------------------------------------------------------------------------------
    # Data accessors
    # -------------------------------------------------------------------------------------

    @property
    def subjects_data(self) -> dict[str, Any]:
        """Return subjects keyed by internal_id."""
        return self._data.get(const.DATA_SUBJECTS, {})

    @property
    def roles_data(self) -> dict[str, Any]:
        """Return roles keyed by internal_id."""
        return self._data.get(const.DATA_ROLES, {})

    @property
    def routines_data(self) -> dict[str, Any]:
        """Return routines keyed by internal_id."""
        return self._data.get(const.DATA_ROUTINES, {})

    @property
    def tasks_data(self) -> dict[str, Any]:
        """Return tasks keyed by internal_id."""
        return self._data.get(const.DATA_TASKS, {})

    @property
    def goals_data(self) -> dict[str, Any]:
        """Return goals keyed by internal_id."""
        return self._data.get(const.DATA_GOALS, {})

    @property
    def completions_data(self) -> dict[str, Any]:
        """Return the completion history keyed by internal_id."""
        return self._data.get(const.DATA_COMPLETIONS, {})

    def get_role_context(self, role_id: str) -> RoleContext:
        """Resolve a stored role into the context engines consume."""
        role = self.roles_data.get(role_id)
        if role is None:
            raise EntityNotFound("role", role_id)
        return VisibilityEngine.build_role_context(role)

    def role_subject_ids(self, role_id: str | None) -> list[str]:
        """Return the subjects administered by a role (ROLE-scope goals)."""
        if not role_id:
            return []
        role = self.roles_data.get(role_id) or {}
        return list(role.get(const.DATA_ROLE_SUBJECT_IDS) or [])
