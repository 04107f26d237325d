"""Live topology: instances and the cluster they form."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from rolecast.exceptions import InstanceLookupError

__all__ = [
    "LoginCredentials",
    "Instance",
    "Cluster",
    "InstancePredicate",
    "role",
    "only_roles",
]

type InstancePredicate = Callable[[Instance], bool]


@dataclass(frozen=True, slots=True)
class LoginCredentials:
    """Credentials to log into an instance."""

    user: str
    private_key: str | None = field(default=None, repr=False)
    password: str | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class Instance:
    """One live virtual machine of the cluster.

    Created only from a successfully allocated node; never mutated.
    """

    id: str
    roles: tuple[str, ...]
    public_ip: str | None = None
    private_ip: str | None = None
    credentials: LoginCredentials | None = None

    def has_role(self, name: str) -> bool:
        return name in self.roles

    @property
    def address(self) -> str | None:
        """Best address to reach the instance from outside the cluster."""
        return self.public_ip or self.private_ip


def role(name: str) -> InstancePredicate:
    """Predicate matching instances that carry ``name`` among their roles."""

    def predicate(instance: Instance) -> bool:
        return instance.has_role(name)

    predicate.__name__ = f"role({name!r})"
    return predicate


def only_roles(roles: tuple[str, ...]) -> InstancePredicate:
    """Predicate matching instances whose role set is exactly ``roles``."""
    wanted = frozenset(roles)

    def predicate(instance: Instance) -> bool:
        return frozenset(instance.roles) == wanted

    predicate.__name__ = f"only_roles({'+'.join(roles)!r})"
    return predicate


@dataclass(frozen=True, slots=True)
class Cluster:
    """Ordered, insertion-stable set of instances.

    Instances keep the order in which they were added; a repeated id
    keeps its first occurrence.
    """

    instances: tuple[Instance, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        ordered: list[Instance] = []
        for instance in self.instances:
            if instance.id not in seen:
                seen.add(instance.id)
                ordered.append(instance)
        object.__setattr__(self, "instances", tuple(ordered))

    def __iter__(self) -> Iterator[Instance]:
        return iter(self.instances)

    def __len__(self) -> int:
        return len(self.instances)

    def __contains__(self, item: object) -> bool:
        match item:
            case Instance(id=instance_id) | str(instance_id):
                return any(i.id == instance_id for i in self.instances)
            case _:
                return False

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(i.id for i in self.instances)

    def get(self, instance_id: str) -> Instance | None:
        return next((i for i in self.instances if i.id == instance_id), None)

    def instances_matching(self, predicate: InstancePredicate | str) -> tuple[Instance, ...]:
        """Every instance matching a predicate (or carrying a role name), in order."""
        match_fn = role(predicate) if isinstance(predicate, str) else predicate
        return tuple(i for i in self.instances if match_fn(i))

    def instance_matching(self, predicate: InstancePredicate | str) -> Instance:
        """First inserted instance matching a predicate (or carrying a role name).

        Raises:
            InstanceLookupError: If no instance matches.
        """
        match_fn = role(predicate) if isinstance(predicate, str) else predicate
        for instance in self.instances:
            if match_fn(instance):
                return instance
        label = getattr(match_fn, "__name__", repr(match_fn))
        raise InstanceLookupError(f"No instance matching {label} among {len(self)} instance(s)")
