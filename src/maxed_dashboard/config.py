# Maxed Dashboard - Marketing analytics dashboard core
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for Maxed Dashboard.

This module is responsible for:
- loading the client configuration from a TOML file,
- exposing the typed ClientConfig dataclass used by the sync client,
- applying the [logging] section to the package logger.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import tomllib  # Python 3.11+

from .logging import setup_logging

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class ClientConfig:
    """
    Client-side configuration for settings sync and metric evaluation.

    Attributes:
        base_url: Root URL of the settings service (no trailing slash).
        timeout: Request timeout in seconds, passed to the HTTP transport.
        rollback_on_failure: Restore the previous value when a patch
            submission fails. Off by default: optimistic writes stay in
            place until the next fetch or successful update.
        log_level: Level name applied by configure_logging().
        log_file: Optional log file path.
        metrics_rules_file: Optional TOML file with [metrics.*] definitions.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    rollback_on_failure: bool = False
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    metrics_rules_file: Optional[Path] = None


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    """Return a top-level table, or an empty mapping if absent or malformed."""
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def load_client_config(config_path: Optional[str] = None) -> ClientConfig:
    """
    Load the client configuration from a TOML file.

    Expected (all optional) sections
    --------------------------------
    [service]
        base_url, timeout.

    [sync]
        rollback_on_failure.

    [logging]
        level, file.

    [metrics]
        rules_file: derived metric definitions.

    Relative file paths are resolved against the directory of the TOML
    file itself.

    Parameters
    ----------
    config_path : str, optional
        Path to the TOML file. Defaults to ``maxed_dashboard.toml`` in the
        current directory.

    Returns
    -------
    ClientConfig
        Parsed and validated configuration.
    """
    if config_path is None:
        config_file = Path("maxed_dashboard.toml").resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Settings service
    service_section = _section(raw, "service")

    base_url = str(service_section.get("base_url") or DEFAULT_BASE_URL).rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid value for 'service.base_url': {base_url!r}. "
            "Expected an http(s) URL."
        )

    raw_timeout = service_section.get("timeout", DEFAULT_TIMEOUT)
    try:
        timeout = float(raw_timeout)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'service.timeout' in the configuration. "
            "Expected a number of seconds."
        ) from exc
    if timeout <= 0:
        raise ValueError("'service.timeout' must be strictly positive.")

    # 2) Sync policy
    sync_section = _section(raw, "sync")
    rollback_on_failure = bool(sync_section.get("rollback_on_failure", False))

    # 3) Logging
    logging_section = _section(raw, "logging")
    log_level = str(logging_section.get("level") or "INFO").upper()
    log_file_raw = logging_section.get("file") or None
    log_file = (base_dir / str(log_file_raw)).resolve() if log_file_raw else None

    # 4) Metric definitions
    metrics_section = _section(raw, "metrics")
    rules_raw = metrics_section.get("rules_file") or None
    metrics_rules_file = (base_dir / str(rules_raw)).resolve() if rules_raw else None

    return ClientConfig(
        base_url=base_url,
        timeout=timeout,
        rollback_on_failure=rollback_on_failure,
        log_level=log_level,
        log_file=log_file,
        metrics_rules_file=metrics_rules_file,
    )


def configure_logging(config: ClientConfig) -> None:
    """Apply the [logging] section of a loaded configuration."""
    setup_logging(
        level=config.log_level,
        log_file=str(config.log_file) if config.log_file else None,
    )
