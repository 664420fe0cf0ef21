# File: helpers/auth_helpers.py
"""Authorization helper functions for RoutineTracker.

Service calls name the role they act as. These helpers confirm the calling
Home Assistant user may act as that role. All functions here require a
`hass` object for auth system access.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .. import const

if TYPE_CHECKING:
    from homeassistant.auth.models import User
    from homeassistant.core import HomeAssistant

    from ..coordinator import RoutineTrackerCoordinator


# ==============================================================================
# Coordinator Access
# ==============================================================================


def get_routinetracker_coordinator(
    hass: HomeAssistant,
) -> RoutineTrackerCoordinator | None:
    """Retrieve RoutineTracker coordinator from config entry runtime_data.

    Args:
        hass: HomeAssistant instance

    Returns:
        RoutineTrackerCoordinator if found, None otherwise
    """
    entries = hass.config_entries.async_entries(const.DOMAIN)
    if not entries:
        return None

    # Get first loaded entry
    for entry in entries:
        if entry.state.name == "LOADED":
            return entry.runtime_data
    return None


# ==============================================================================
# Authorization Checks
# ==============================================================================


async def is_user_authorized_for_role(
    hass: HomeAssistant,
    user_id: str | None,
    role_id: str,
) -> bool:
    """Check if a Home Assistant user may act as a RoutineTracker role.

    Authorization rules:
      - No user (automation or system context) => authorized
      - Admin users => authorized
      - If role['ha_user_id'] == user.id => authorized
      - Otherwise => not authorized

    Args:
        hass: HomeAssistant instance
        user_id: User ID from the service call context
        role_id: Role the call acts as

    Returns:
        True if authorized, False otherwise
    """
    if not user_id:
        return True

    user: User | None = await hass.auth.async_get_user(user_id)
    if not user:
        const.LOGGER.warning("WARNING: Authorization: Invalid user ID '%s'", user_id)
        return False

    if user.is_admin:
        return True

    coordinator = get_routinetracker_coordinator(hass)
    if not coordinator:
        const.LOGGER.warning(
            "WARNING: Authorization: RoutineTracker coordinator not found"
        )
        return False

    role = coordinator.roles_data.get(role_id)
    if not role:
        const.LOGGER.warning(
            "WARNING: Authorization: Role ID '%s' not found in coordinator data", role_id
        )
        return False

    linked_ha_id = role.get(const.DATA_ROLE_HA_USER_ID)
    if linked_ha_id and linked_ha_id == user.id:
        return True

    const.LOGGER.warning(
        "WARNING: Authorization: Non-admin user '%s' attempted to act as role '%s' but is not linked",
        user.name,
        role.get(const.DATA_NAME),
    )
    return False
