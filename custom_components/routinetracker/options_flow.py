# File: options_flow.py
"""Options Flow for the RoutineTracker integration.

Edits the general options. Saving reloads the entry through the update
listener registered in __init__.py.
"""

from __future__ import annotations

from typing import Any

from homeassistant import config_entries

from . import const
from .helpers import flow_helpers as fh


class RoutineTrackerOptionsFlowHandler(config_entries.OptionsFlow):
    """Options Flow for general RoutineTracker settings."""

    async def async_step_init(self, user_input: dict[str, Any] | None = None):
        """Show and store the general options."""
        if user_input is not None:
            options = fh.normalize_general_options(user_input)
            const.LOGGER.debug(
                "DEBUG: General Options Updated: Enforce Undo Window=%s, "
                "Mutation Timeout=%s, Streak Lookback=%s",
                options[const.CONF_ENFORCE_UNDO_WINDOW],
                options[const.CONF_MUTATION_TIMEOUT],
                options[const.CONF_STREAK_LOOKBACK],
            )
            return self.async_create_entry(title="", data=options)

        return self.async_show_form(
            step_id=const.OPTIONS_FLOW_STEP_INIT,
            data_schema=fh.build_general_options_schema(dict(self.config_entry.options)),
        )
