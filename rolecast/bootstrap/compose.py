"""Statement composition.

An Op is either a literal shell string or a zero-argument callable that
generates one. StatementBuilder collects ops in order and renders them
into a single bash script.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Final

type Op = str | Callable[[], str]

SHEBANG: Final = "#!/bin/bash"
STRICT_MODE: Final = "set -euo pipefail"


def resolve(op: Op) -> str:
    """Render one op to its shell text."""
    return op if isinstance(op, str) else op()


class StatementBuilder:
    """Ordered, append-only collection of statements.

    Hooks of every role on a template append to the same builder, so the
    rendered script holds their contributions in role-list order.
    """

    __slots__ = ("_ops",)

    def __init__(self, ops: Iterable[Op] = ()) -> None:
        self._ops: list[Op] = list(ops)

    def add(self, *ops: Op) -> StatementBuilder:
        self._ops.extend(ops)
        return self

    def __iter__(self) -> Iterator[Op]:
        return iter(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def __bool__(self) -> bool:
        return bool(self._ops)

    def __contains__(self, op: object) -> bool:
        """True if a statement renders to the same text as ``op``."""
        if not isinstance(op, str) and not callable(op):
            return False
        return resolve(op) in self.statements

    @property
    def statements(self) -> tuple[str, ...]:
        return tuple(resolve(op) for op in self._ops)

    def render_body(self) -> str:
        """Statements joined by newlines, without script header."""
        return "\n".join(self.statements)

    def render(self) -> str:
        """Full bash script: shebang, strict mode, then every statement."""
        return "\n".join((SHEBANG, STRICT_MODE, *self.statements)) + "\n"
