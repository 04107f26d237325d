"""TOML-based cluster configuration.

Loads ~/.rolecast/defaults.toml (global) and rolecast.toml (project),
merges them, and resolves named clusters into ClusterSpec instances.

    [clusters.hadoop]
    provider = { name = "aws", identity = "KEY", credential = "SECRET" }
    public_key_file = "~/.ssh/id_rsa.pub"
    private_key_file = "~/.ssh/id_rsa"
    instance_templates = "1 hadoop-namenode+hadoop-jobtracker,3 hadoop-datanode+hadoop-tasktracker"
    instance_templates_minimum = "2 hadoop-datanode+hadoop-tasktracker"

    [clusters.hadoop.config]
    hadoop-common = { "fs.trash.interval" = "60" }
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from rolecast.constants import DEFAULT_MAX_STARTUP_RETRIES
from rolecast.exceptions import ConfigError
from rolecast.types.spec import (
    ClusterSpec,
    InstanceTemplate,
    KeyPair,
    ProviderIdentity,
    parse_instance_templates,
)

log = logger.bind(component="config")

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".rolecast" / "defaults.toml"
PROJECT_CONFIG_NAME = "rolecast.toml"

_CLUSTER_KEYS = frozenset({
    "provider",
    "public_key_file",
    "private_key_file",
    "max_startup_retries",
    "instance_templates",
    "instance_templates_minimum",
    "templates",
    "image_id",
    "hardware_id",
    "location_id",
    "config",
})


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("clusters", {})
    return merged


def _flatten(raw: Mapping[str, Any], prefix: str = "") -> dict[str, str]:
    flat: dict[str, str] = {}
    for key, value in raw.items():
        name = f"{prefix}.{key}" if prefix else key
        match value:
            case Mapping():
                flat |= _flatten(value, name)
            case bool():
                flat[name] = str(value).lower()
            case list():
                flat[name] = ",".join(str(v) for v in value)
            case _:
                flat[name] = str(value)
    return flat


def _read_key(path: str) -> str:
    key_path = Path(path).expanduser()
    try:
        return key_path.read_text().strip()
    except OSError as e:
        raise ConfigError(f"Cannot read key file {key_path}: {e}") from e


def _build_key_pair(name: str, raw: RawConfig) -> KeyPair | None:
    public_file = raw.get("public_key_file")
    private_file = raw.get("private_key_file")
    match (public_file, private_file):
        case (None, None):
            return None
        case (str(), str()):
            return KeyPair(public_key=_read_key(public_file), private_key=_read_key(private_file))
        case _:
            raise ConfigError(
                f"Cluster '{name}' needs both public_key_file and private_key_file"
            )


def _build_templates(name: str, raw: RawConfig) -> tuple[InstanceTemplate, ...]:
    tables = raw.get("templates")
    text = raw.get("instance_templates")

    match (tables, text):
        case (None, None):
            raise ConfigError(f"Cluster '{name}' has no instance templates")
        case (list(), None):
            try:
                return tuple(InstanceTemplate(**t) for t in tables)
            except TypeError as e:
                raise ConfigError(f"Invalid template table in cluster '{name}': {e}") from e
        case (None, str()):
            return parse_instance_templates(text, raw.get("instance_templates_minimum"))
        case _:
            raise ConfigError(
                f"Cluster '{name}' sets both 'templates' and 'instance_templates'"
            )


def cluster_spec_from_mapping(name: str, raw: Mapping[str, Any]) -> ClusterSpec:
    """Build a ClusterSpec from one ``[clusters.<name>]`` table."""
    raw = dict(raw)
    unknown = sorted(set(raw) - _CLUSTER_KEYS)
    if unknown:
        raise ConfigError(f"Unknown key(s) in cluster '{name}': {', '.join(unknown)}")

    try:
        provider = ProviderIdentity(**raw.get("provider", {}))
    except TypeError as e:
        raise ConfigError(f"Invalid provider table in cluster '{name}': {e}") from e

    spec = ClusterSpec(
        name=name,
        templates=_build_templates(name, raw),
        provider=provider,
        key_pair=_build_key_pair(name, raw),
        max_startup_retries=raw.get("max_startup_retries", DEFAULT_MAX_STARTUP_RETRIES),
        image_id=raw.get("image_id"),
        hardware_id=raw.get("hardware_id"),
        location_id=raw.get("location_id"),
        config=_flatten(raw.get("config", {})),
    )
    log.debug(
        "Resolved cluster {name}: {templates}",
        name=name,
        templates=[str(t) for t in spec.templates],
    )
    return spec


def resolve_cluster(
    name: str,
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> ClusterSpec:
    config = load_config(project_dir=project_dir, global_path=global_path)

    clusters = config["clusters"]
    if name not in clusters:
        raise ConfigError(f"Cluster '{name}' not found. Available: {', '.join(clusters) or 'none'}")

    return cluster_spec_from_mapping(name, clusters[name])
