# File: config_flow.py
"""Config flow for the RoutineTracker integration.

A single instance is allowed. Entities (subjects, roles, routines, tasks,
goals) live in storage, not in the config entry; the entry only carries the
general options.
"""

from __future__ import annotations

from typing import Any

from homeassistant import config_entries
from homeassistant.core import callback

from . import const
from .helpers import flow_helpers as fh
from .options_flow import RoutineTrackerOptionsFlowHandler


class RoutineTrackerConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Config Flow for RoutineTracker."""

    VERSION = 1

    async def async_step_user(self, user_input: dict[str, Any] | None = None):
        """Create the entry with the chosen general options."""
        if any(self._async_current_entries()):
            return self.async_abort(reason=const.TRANS_KEY_ABORT_SINGLE_INSTANCE)

        if user_input is not None:
            options = fh.normalize_general_options(user_input)
            const.LOGGER.info("INFO: Creating RoutineTracker entry")
            return self.async_create_entry(
                title=const.ROUTINETRACKER_TITLE, data={}, options=options
            )

        return self.async_show_form(
            step_id=const.CONFIG_FLOW_STEP_USER,
            data_schema=fh.build_general_options_schema(),
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Return the Options Flow."""
        return RoutineTrackerOptionsFlowHandler()
