"""Centralized constants and enums for rolecast.

Phase names, hook naming and default values shared by the engine,
the configuration layer and the reference services.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# Cluster Action Phases
# =============================================================================


class Phase(StrEnum):
    """Cluster action phases.

    BOOTSTRAP, CONFIGURE and START run in sequence during a launch.
    STOP and DESTROY are separate invocations.
    """

    BOOTSTRAP = "bootstrap"
    CONFIGURE = "configure"
    START = "start"
    STOP = "stop"
    DESTROY = "destroy"

    @property
    def before(self) -> str:
        """Name of the hook invoked before this phase's main action."""
        return f"before_{self.value}"

    @property
    def after(self) -> str:
        """Name of the hook invoked after this phase's main action."""
        return f"after_{self.value}"


LAUNCH_PHASES: Final = (Phase.BOOTSTRAP, Phase.CONFIGURE, Phase.START)


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_MAX_STARTUP_RETRIES: Final = 1
DEFAULT_LEAF_WORKERS: Final = 16
DEFAULT_SSH_USER: Final = "root"
DEFAULT_SSH_PORT: Final = 22
DEFAULT_SCRIPT_TIMEOUT: Final = 600

# Role separator used in template strings ("hadoop-namenode+hadoop-jobtracker")
ROLE_SEPARATOR: Final = "+"

REGISTRY_FILE_NAME: Final = "instances"
