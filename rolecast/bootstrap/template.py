"""Machine template construction.

A MachineTemplate is what the compute provider receives for each
allocation round: a machine selection (image, hardware, location) and
the first-boot script. Building it is a pure function of the ClusterSpec, the
template's statement builder and the selection strategy.

Machine selection strategies are plain callables, composed in order:

    def gpu_hardware(spec, selection):
        return replace(selection, hardware_id="p3.2xlarge")

    event.set_template_strategy(chain(default_strategy, gpu_hardware))
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING

from loguru import logger

from rolecast.bootstrap import ops
from rolecast.bootstrap.compose import SHEBANG, STRICT_MODE, StatementBuilder, resolve

if TYPE_CHECKING:
    from rolecast.types.spec import ClusterSpec

log = logger.bind(component="template")


class OsFamily(StrEnum):
    UBUNTU = "ubuntu"
    DEBIAN = "debian"
    CENTOS = "centos"
    AMAZON = "amzn-linux"


@dataclass(frozen=True, slots=True)
class MachineSelection:
    """Image and hardware constraints handed to the provider."""

    image_id: str | None = None
    hardware_id: str | None = None
    location_id: str | None = None
    os_family: OsFamily | None = None
    min_cores: float | None = None
    min_ram_mb: int | None = None
    is_64bit: bool | None = None


type TemplateStrategy = Callable[[ClusterSpec, MachineSelection], MachineSelection]


def default_strategy(spec: ClusterSpec, selection: MachineSelection) -> MachineSelection:
    """Use the ClusterSpec's image/hardware/location ids, else a small Ubuntu box."""
    image = selection.image_id or spec.image_id
    hardware = selection.hardware_id or spec.hardware_id
    return replace(
        selection,
        image_id=image,
        hardware_id=hardware,
        location_id=selection.location_id or spec.location_id,
        os_family=selection.os_family or (None if image else OsFamily.UBUNTU),
        min_ram_mb=selection.min_ram_mb or (None if hardware else 512),
    )


def chain(*strategies: TemplateStrategy) -> TemplateStrategy:
    """Apply strategies left to right."""

    def apply(spec: ClusterSpec, selection: MachineSelection) -> MachineSelection:
        for strategy in strategies:
            selection = strategy(spec, selection)
        return selection

    return apply


@dataclass(frozen=True, slots=True)
class MachineTemplate:
    """Provider-facing template: where to run and what to run first."""

    selection: MachineSelection
    statements: tuple[str, ...]

    @property
    def script(self) -> str:
        return "\n".join((SHEBANG, STRICT_MODE, *self.statements)) + "\n"


def build_machine_template(
    spec: ClusterSpec,
    statements: StatementBuilder,
    strategy: TemplateStrategy | None = None,
) -> MachineTemplate:
    """Assemble the machine template for one instance template.

    The script authorizes the cluster public key, then runs the role
    statements in role order, then installs the cluster private key.
    """
    head = (ops.authorize_public_key(spec.public_key),) if spec.public_key else ()
    tail = (ops.install_private_key(spec.private_key),) if spec.private_key else ()
    rendered = tuple(resolve(op) for op in (*head, *statements, *tail))

    selection = (strategy or default_strategy)(spec, MachineSelection())
    template = MachineTemplate(selection=selection, statements=rendered)

    # Keys stay out of the log
    log.debug("Role statements:\n{body}", body=statements.render_body())
    return template
