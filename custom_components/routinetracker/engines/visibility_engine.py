"""Visibility Engine - single source of the restricted-visibility rule.

A routine, task or goal flagged ``restricted_visibility`` is visible only to a
non-kiosk teacher who owns it, or who is linked to the owner as a co-teacher.
Everyone else (parents, principals, kiosks, subjects) sees it as absent.

Every read path (list, get-by-id, goal aggregation input) filters through
``build_predicate`` so the rule is composed once and reused.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from ..type_defs import RoleContext, RoleData


class VisibilityEngine:
    """Role-based visibility and access rules."""

    @staticmethod
    def build_role_context(role: RoleData | Mapping[str, Any]) -> RoleContext:
        """Normalize a stored role into the context the engines consume."""
        role_type = role.get(const.DATA_ROLE_TYPE, "")
        return {
            "role_id": role.get(const.DATA_INTERNAL_ID, ""),
            "role_type": role_type,
            "is_kiosk": bool(role.get(const.DATA_ROLE_IS_KIOSK, False))
            or role_type == const.ROLE_TYPE_KIOSK,
            "linked_role_ids": list(role.get(const.DATA_ROLE_LINKED_ROLE_IDS) or []),
            "administered_subject_ids": list(role.get(const.DATA_ROLE_SUBJECT_IDS) or []),
            "own_subject_id": role.get(const.DATA_ROLE_OWN_SUBJECT_ID),
        }

    @staticmethod
    def is_privileged_for(viewer: RoleContext | None, owner_role_id: str | None) -> bool:
        """Return True if the viewer may see restricted data owned by ``owner_role_id``."""
        if viewer is None or viewer["is_kiosk"]:
            return False
        if viewer["role_type"] != const.PRIVILEGED_ROLE_TYPE:
            return False
        if not owner_role_id:
            return False
        return (
            viewer["role_id"] == owner_role_id
            or owner_role_id in viewer["linked_role_ids"]
        )

    @staticmethod
    def _entity_visible(
        entity: Mapping[str, Any],
        viewer: RoleContext | None,
        owner_role_id: str | None,
    ) -> bool:
        if not entity.get(const.DATA_RESTRICTED_VISIBILITY, False):
            return True
        return VisibilityEngine.is_privileged_for(viewer, owner_role_id)

    @staticmethod
    def is_visible_to(
        entity: Mapping[str, Any],
        viewer: RoleContext | None,
        routine: Mapping[str, Any] | None = None,
    ) -> bool:
        """Return whether a routine, task or goal is visible to ``viewer``.

        Args:
            entity: Routine, task or goal dict
            viewer: Resolved viewer role (None means no viewer, sees nothing restricted)
            routine: Owning routine when ``entity`` is a task

        A task inherits its routine's restriction and owner. A task whose routine
        is missing is treated as hidden.
        """
        if const.DATA_TASK_ROUTINE_ID in entity:
            if routine is None:
                return False
            owner = routine.get(const.DATA_OWNER_ROLE_ID)
            return VisibilityEngine._entity_visible(
                routine, viewer, owner
            ) and VisibilityEngine._entity_visible(entity, viewer, owner)

        return VisibilityEngine._entity_visible(
            entity, viewer, entity.get(const.DATA_OWNER_ROLE_ID)
        )

    @staticmethod
    def build_predicate(
        viewer: RoleContext | None,
        routines_by_id: Mapping[str, Mapping[str, Any]],
    ) -> Callable[[Mapping[str, Any]], bool]:
        """Compose one visibility predicate for a viewer.

        The returned callable accepts a routine, task or goal dict and resolves a
        task's routine from ``routines_by_id``.
        """

        def _predicate(entity: Mapping[str, Any]) -> bool:
            routine = None
            routine_id = entity.get(const.DATA_TASK_ROUTINE_ID)
            if routine_id is not None:
                routine = routines_by_id.get(routine_id)
            return VisibilityEngine.is_visible_to(entity, viewer, routine)

        return _predicate

    @staticmethod
    def can_act_on_subject(role: RoleContext, subject_id: str) -> bool:
        """Return whether ``role`` holds completion rights over ``subject_id``.

        The subject must be administered by the role or be the role's own profile.
        """
        return (
            subject_id in role["administered_subject_ids"]
            or role["own_subject_id"] == subject_id
        )
