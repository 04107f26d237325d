"""Lifecycle phases: events, role handlers and the orchestrator."""

from rolecast.actions.event import ClusterActionEvent
from rolecast.actions.handlers import HOOK_NAMES, HandlerRegistry, Hook, Hooks, RoleHandler
from rolecast.actions.orchestrator import ClusterActionOrchestrator

__all__ = [
    "HOOK_NAMES",
    "ClusterActionEvent",
    "ClusterActionOrchestrator",
    "HandlerRegistry",
    "Hook",
    "Hooks",
    "RoleHandler",
]
