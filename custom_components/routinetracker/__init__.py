"""Initialization file for the RoutineTracker integration.

Handles setting up the integration, including loading configuration entries,
initializing data storage, and preparing the coordinator for data handling.

Key Features:
- Config entry setup and unload support.
- Coordinator initialization for completion and goal tracking.
- Storage management for persistent data handling.
"""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady
from homeassistant.util import dt as dt_util

from . import const
from .coordinator import RoutineTrackerCoordinator
from .services import async_setup_services, async_unload_services
from .storage_manager import RoutineTrackerStorageManager
from .utils import dt_utils


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info(
        "INFO: Starting setup for RoutineTracker entry: %s", entry.entry_id
    )

    dt_utils.set_default_timezone(dt_util.get_time_zone(hass.config.time_zone))

    storage_manager = RoutineTrackerStorageManager(hass, const.STORAGE_KEY)
    await storage_manager.async_initialize()

    coordinator = RoutineTrackerCoordinator(hass, entry, storage_manager)

    try:
        await coordinator.async_config_entry_first_refresh()
    except ConfigEntryNotReady as e:
        const.LOGGER.error("ERROR: Failed to refresh coordinator data: %s", e)
        raise ConfigEntryNotReady from e

    entry.runtime_data = coordinator

    async_setup_services(hass)

    entry.async_on_unload(entry.add_update_listener(async_update_options))

    const.LOGGER.info(
        "INFO: RoutineTracker setup complete for entry: %s", entry.entry_id
    )
    return True


async def async_update_options(
    hass: HomeAssistant, entry: ConfigEntry
) -> None:
    """Reload the entry so new option values reach the managers."""
    const.LOGGER.debug("DEBUG: Options updated for entry %s, reloading", entry.entry_id)
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(
    hass: HomeAssistant, entry: ConfigEntry
) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("INFO: Unloading RoutineTracker entry: %s", entry.entry_id)

    await async_unload_services(hass)

    return True


async def async_remove_entry(
    hass: HomeAssistant, entry: ConfigEntry
) -> None:
    """Handle removal of a config entry."""
    const.LOGGER.info("INFO: Removing RoutineTracker entry: %s", entry.entry_id)

    storage_manager = RoutineTrackerStorageManager(hass, const.STORAGE_KEY)
    await storage_manager.async_delete_storage()

    const.LOGGER.info("INFO: RoutineTracker entry data cleared: %s", entry.entry_id)
