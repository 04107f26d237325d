"""Bootstrap scripts, machine templates and per-template startup."""

from rolecast.bootstrap.compose import Op, StatementBuilder
from rolecast.bootstrap.startup import StartupProcess, TemplateResult
from rolecast.bootstrap.template import (
    MachineSelection,
    MachineTemplate,
    OsFamily,
    TemplateStrategy,
    build_machine_template,
    chain,
    default_strategy,
)

__all__ = [
    "MachineSelection",
    "MachineTemplate",
    "Op",
    "OsFamily",
    "StartupProcess",
    "StatementBuilder",
    "TemplateResult",
    "TemplateStrategy",
    "build_machine_template",
    "chain",
    "default_strategy",
]
