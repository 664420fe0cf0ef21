"""Home Assistant-bound helper functions for RoutineTracker.

NOTE: Functions that need `hass` object belong here, NOT in utils/.

Submodules:
    - event_helpers: Instance-scoped dispatcher signal names
    - auth_helpers: HA user to RoutineTracker role authorization
    - flow_helpers: Config and options flow schemas
"""

from . import auth_helpers, event_helpers, flow_helpers

__all__ = ["auth_helpers", "event_helpers", "flow_helpers"]
