# File: services.py
"""Defines custom services for the RoutineTracker integration.

These services allow direct actions through scripts, automations and
dashboards. Every call names the role it acts as; typed engine failures are
converted to translated ServiceValidationError instances.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import voluptuous as vol
from homeassistant.core import HomeAssistant, ServiceCall, SupportsResponse
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers import config_validation as cv

from . import const
from .engines import CompletionEngineError
from .helpers import auth_helpers

if TYPE_CHECKING:
    from .coordinator import RoutineTrackerCoordinator
    from .type_defs import RoleContext

# --- Service Schemas ---
COMPLETE_TASK_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_ROLE_ID): cv.string,
        vol.Required(const.FIELD_TASK_ID): cv.string,
        vol.Required(const.FIELD_SUBJECT_ID): cv.string,
        vol.Optional(const.FIELD_VALUE): vol.Coerce(float),
        vol.Optional(const.FIELD_IDEMPOTENCY_KEY): cv.string,
    }
)

UNDO_COMPLETION_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Required(const.FIELD_ROLE_ID): cv.string,
            vol.Optional(const.FIELD_COMPLETION_ID): cv.string,
            vol.Inclusive(const.FIELD_TASK_ID, "cell"): cv.string,
            vol.Inclusive(const.FIELD_SUBJECT_ID, "cell"): cv.string,
        }
    ),
    cv.has_at_least_one_key(const.FIELD_COMPLETION_ID, const.FIELD_TASK_ID),
)

GET_TASK_STATUS_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_ROLE_ID): cv.string,
        vol.Required(const.FIELD_TASK_ID): cv.string,
        vol.Required(const.FIELD_SUBJECT_ID): cv.string,
    }
)

GET_GOAL_PROGRESS_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_ROLE_ID): cv.string,
        vol.Optional(const.FIELD_GOAL_ID): cv.string,
        vol.Optional(const.FIELD_SUBJECT_ID): cv.string,
    }
)

CHECKIN_ACTION_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_ACTION): vol.In(const.CHECKIN_ACTIONS),
        vol.Required(const.FIELD_SUBJECT_ID): cv.string,
        vol.Required(const.FIELD_TASK_ID): cv.string,
        vol.Optional(const.FIELD_VALUE): vol.Coerce(float),
    }
)

BULK_CHECK_IN_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_ROLE_ID): cv.string,
        vol.Optional(const.FIELD_SUBJECT_IDS, default=[]): vol.All(
            cv.ensure_list, [cv.string]
        ),
        vol.Required(const.FIELD_ACTIONS): vol.All(
            cv.ensure_list, [CHECKIN_ACTION_SCHEMA]
        ),
    }
)


def _raise_service_error(err: CompletionEngineError) -> None:
    """Convert a typed engine failure into a translated service error."""
    raise ServiceValidationError(
        translation_domain=const.DOMAIN,
        translation_key=err.error_kind,
        translation_placeholders=err.placeholders(),
    ) from err


async def _async_resolve_actor(
    hass: HomeAssistant, call: ServiceCall, action: str
) -> tuple[RoutineTrackerCoordinator, RoleContext]:
    """Return the loaded coordinator and the role context the call acts as."""
    coordinator = auth_helpers.get_routinetracker_coordinator(hass)
    if coordinator is None:
        const.LOGGER.warning("WARNING: %s: No loaded RoutineTracker entry", action)
        raise HomeAssistantError(
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_NO_ENTRY,
        )

    role_id = call.data[const.FIELD_ROLE_ID]
    if not await auth_helpers.is_user_authorized_for_role(
        hass, call.context.user_id, role_id
    ):
        raise ServiceValidationError(
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_NOT_AUTHORIZED,
            translation_placeholders={"action": action},
        )

    try:
        actor = coordinator.get_role_context(role_id)
    except CompletionEngineError as err:
        _raise_service_error(err)
    return coordinator, actor


def async_setup_services(hass: HomeAssistant) -> None:
    """Register RoutineTracker services."""

    async def handle_complete_task(call: ServiceCall) -> dict[str, Any]:
        """Handle recording a task completion."""
        coordinator, actor = await _async_resolve_actor(
            hass, call, const.SERVICE_COMPLETE_TASK
        )
        task_id = call.data[const.FIELD_TASK_ID]
        subject_id = call.data[const.FIELD_SUBJECT_ID]

        try:
            event = await coordinator.completion_manager.complete(
                task_id,
                subject_id,
                actor,
                call.data.get(const.FIELD_VALUE),
                idempotency_key=call.data.get(const.FIELD_IDEMPOTENCY_KEY),
            )
        except CompletionEngineError as err:
            const.LOGGER.warning(
                "WARNING: Complete Task: task %s subject %s rejected: %s",
                task_id,
                subject_id,
                err,
            )
            _raise_service_error(err)

        const.LOGGER.info(
            "INFO: Task '%s' completed for subject '%s' by role '%s'",
            task_id,
            subject_id,
            actor["role_id"],
        )
        return {"completion": dict(event)}

    async def handle_undo_completion(call: ServiceCall) -> dict[str, Any]:
        """Handle undoing a completion by id, or the latest one of a cell."""
        coordinator, actor = await _async_resolve_actor(
            hass, call, const.SERVICE_UNDO_COMPLETION
        )
        completion_id = call.data.get(const.FIELD_COMPLETION_ID)

        try:
            if completion_id:
                removed = await coordinator.completion_manager.undo(completion_id, actor)
            else:
                removed = await coordinator.completion_manager.undo_latest(
                    call.data[const.FIELD_TASK_ID],
                    call.data[const.FIELD_SUBJECT_ID],
                    actor,
                )
        except CompletionEngineError as err:
            const.LOGGER.warning("WARNING: Undo Completion rejected: %s", err)
            _raise_service_error(err)

        const.LOGGER.info(
            "INFO: Completion '%s' undone by role '%s'",
            removed[const.DATA_INTERNAL_ID],
            actor["role_id"],
        )
        return {"completion": dict(removed)}

    async def handle_get_task_status(call: ServiceCall) -> dict[str, Any]:
        """Handle reading one cell's status."""
        coordinator, actor = await _async_resolve_actor(
            hass, call, const.SERVICE_GET_TASK_STATUS
        )
        try:
            return coordinator.completion_manager.get_task_status(
                call.data[const.FIELD_TASK_ID],
                call.data[const.FIELD_SUBJECT_ID],
                actor,
            )
        except CompletionEngineError as err:
            _raise_service_error(err)

    async def handle_get_goal_progress(call: ServiceCall) -> dict[str, Any]:
        """Handle reading goal progress (one goal or every visible goal)."""
        coordinator, actor = await _async_resolve_actor(
            hass, call, const.SERVICE_GET_GOAL_PROGRESS
        )
        goal_id = call.data.get(const.FIELD_GOAL_ID)
        subject_id = call.data.get(const.FIELD_SUBJECT_ID)

        try:
            if goal_id:
                goals = [
                    coordinator.goal_manager.get_goal_progress(goal_id, actor, subject_id)
                ]
            else:
                goals = coordinator.goal_manager.list_goal_progress(actor, subject_id)
        except CompletionEngineError as err:
            _raise_service_error(err)
        return {"goals": [dict(goal) for goal in goals]}

    async def handle_bulk_check_in(call: ServiceCall) -> dict[str, Any]:
        """Handle a batch of optimistic check-in actions for a grid of subjects."""
        coordinator, actor = await _async_resolve_actor(
            hass, call, const.SERVICE_BULK_CHECK_IN
        )
        actions = call.data[const.FIELD_ACTIONS]
        subject_ids = list(
            dict.fromkeys(
                [
                    *call.data[const.FIELD_SUBJECT_IDS],
                    *(action[const.FIELD_SUBJECT_ID] for action in actions),
                ]
            )
        )

        session = coordinator.checkin_manager.create_session(actor)
        await session.async_load(subject_ids)
        results = await session.async_run_actions(actions)

        failed = [result for result in results if not result.ok]
        const.LOGGER.info(
            "INFO: Bulk check-in by role '%s': %s actions, %s rolled back",
            actor["role_id"],
            len(results),
            len(failed),
        )
        return {
            "results": [result.as_dict() for result in results],
            "cells": [view.as_dict() for view in session.views.values()],
        }

    # --- Register Services ---
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_COMPLETE_TASK,
        handle_complete_task,
        schema=COMPLETE_TASK_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_UNDO_COMPLETION,
        handle_undo_completion,
        schema=UNDO_COMPLETION_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_GET_TASK_STATUS,
        handle_get_task_status,
        schema=GET_TASK_STATUS_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_GET_GOAL_PROGRESS,
        handle_get_goal_progress,
        schema=GET_GOAL_PROGRESS_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_BULK_CHECK_IN,
        handle_bulk_check_in,
        schema=BULK_CHECK_IN_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )

    const.LOGGER.info("INFO: RoutineTracker services have been registered successfully")


async def async_unload_services(hass: HomeAssistant) -> None:
    """Unregister RoutineTracker services when unloading the integration."""
    services = [
        const.SERVICE_COMPLETE_TASK,
        const.SERVICE_UNDO_COMPLETION,
        const.SERVICE_GET_TASK_STATUS,
        const.SERVICE_GET_GOAL_PROGRESS,
        const.SERVICE_BULK_CHECK_IN,
    ]

    for service in services:
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)

    const.LOGGER.info("INFO: RoutineTracker services have been unregistered")
