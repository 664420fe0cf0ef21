# File: helpers/flow_helpers.py
"""Schema builders for the RoutineTracker config and options flows."""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant.helpers import selector

from .. import const


def build_general_options_schema(default: dict[str, Any] | None = None) -> vol.Schema:
    """Build schema for general options: undo window, mutation timeout, streak lookback."""
    default = default or {}

    default_enforce = default.get(
        const.CONF_ENFORCE_UNDO_WINDOW, const.DEFAULT_ENFORCE_UNDO_WINDOW
    )
    default_timeout = default.get(
        const.CONF_MUTATION_TIMEOUT, const.DEFAULT_MUTATION_TIMEOUT
    )
    default_lookback = default.get(
        const.CONF_STREAK_LOOKBACK, const.DEFAULT_STREAK_LOOKBACK
    )

    return vol.Schema(
        {
            vol.Required(
                const.CONF_ENFORCE_UNDO_WINDOW, default=default_enforce
            ): selector.BooleanSelector(),
            vol.Required(
                const.CONF_MUTATION_TIMEOUT, default=default_timeout
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    mode=selector.NumberSelectorMode.BOX,
                    min=const.MIN_MUTATION_TIMEOUT,
                    max=const.MAX_MUTATION_TIMEOUT,
                    step=1,
                    unit_of_measurement="s",
                )
            ),
            vol.Required(
                const.CONF_STREAK_LOOKBACK, default=default_lookback
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    mode=selector.NumberSelectorMode.BOX,
                    min=const.MIN_STREAK_LOOKBACK,
                    max=const.MAX_STREAK_LOOKBACK,
                    step=1,
                )
            ),
        }
    )


def normalize_general_options(user_input: dict[str, Any]) -> dict[str, Any]:
    """Coerce selector output (NumberSelector yields floats) to stored option types."""
    return {
        const.CONF_ENFORCE_UNDO_WINDOW: bool(user_input[const.CONF_ENFORCE_UNDO_WINDOW]),
        const.CONF_MUTATION_TIMEOUT: int(user_input[const.CONF_MUTATION_TIMEOUT]),
        const.CONF_STREAK_LOOKBACK: int(user_input[const.CONF_STREAK_LOOKBACK]),
    }
