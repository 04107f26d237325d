"""Role handler registry.

A role handler is any object with a ``role`` name and some of the hook
methods below. The registry maps role names to handlers and dispatches
a hook, by name, to every role of a template in role-list order.
Missing hooks are skipped.

    before_bootstrap  after_bootstrap
    before_configure  after_configure
    before_start      after_start
    before_stop       after_stop
    before_destroy    after_destroy

Handlers may be classes:

    class ZooKeeper:
        role = "zookeeper"

        def before_bootstrap(self, event):
            event.add_statement(call("install_zookeeper"))

or bare functions bundled in a Hooks record:

    registry.register(Hooks("noop"))
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

from loguru import logger

from rolecast.constants import Phase
from rolecast.exceptions import UnknownRoleError

if TYPE_CHECKING:
    from rolecast.actions.event import ClusterActionEvent

log = logger.bind(component="handlers")

type Hook = Callable[[ClusterActionEvent], None]

HOOK_NAMES: Final = frozenset(name for p in Phase for name in (p.before, p.after))


@runtime_checkable
class RoleHandler(Protocol):
    """Anything carrying a role name; hook methods are optional."""

    @property
    def role(self) -> str: ...


@dataclass(frozen=True, slots=True)
class Hooks:
    """Role handler assembled from plain functions."""

    role: str
    before_bootstrap: Hook | None = None
    after_bootstrap: Hook | None = None
    before_configure: Hook | None = None
    after_configure: Hook | None = None
    before_start: Hook | None = None
    after_start: Hook | None = None
    before_stop: Hook | None = None
    after_stop: Hook | None = None
    before_destroy: Hook | None = None
    after_destroy: Hook | None = None


class HandlerRegistry:
    """Role name -> handler dispatch table."""

    __slots__ = ("_handlers",)

    def __init__(self, handlers: Iterable[RoleHandler] = ()) -> None:
        self._handlers: dict[str, RoleHandler] = {}
        for handler in handlers:
            self.register(handler)

    def register(self, handler: RoleHandler) -> RoleHandler:
        if not handler.role:
            raise ValueError(f"Handler {handler!r} has no role name")
        if handler.role in self._handlers:
            log.warning("Replacing handler for role {role}", role=handler.role)
        self._handlers[handler.role] = handler
        return handler

    def __getitem__(self, role: str) -> RoleHandler:
        try:
            return self._handlers[role]
        except KeyError:
            raise UnknownRoleError(role, sorted(self._handlers)) from None

    def __contains__(self, role: object) -> bool:
        return role in self._handlers

    def __iter__(self) -> Iterator[RoleHandler]:
        return iter(self._handlers.values())

    def __len__(self) -> int:
        return len(self._handlers)

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    def check(self, roles: Iterable[str]) -> None:
        """Raise UnknownRoleError for the first role without a handler."""
        for role in roles:
            self[role]

    def hook(self, role: str, name: str) -> Hook | None:
        if name not in HOOK_NAMES:
            raise ValueError(f"Unknown hook {name!r}")
        return getattr(self[role], name, None)

    def dispatch(self, name: str, event: ClusterActionEvent) -> None:
        """Invoke hook ``name`` for every role of the event's template, in order."""
        for role in event.template.roles:
            hook = self.hook(role, name)
            if hook is None:
                continue
            log.trace("{hook} for {role}", hook=name, role=role)
            hook(event)
