# -*- coding: utf-8 -*-
"""
Stream Specification Service Configuration

Centralized configuration for the stream specification engine covering:
- Numeric tolerances used by the validation engine
- Unit handling policy (permissive vs. strict unknown-unit handling)
- Streamset persistence schema version
- Session limits and detail-lookup cache sizing
- Provenance and logging

All settings can be overridden via environment variables with the
``EI_STREAM_SPEC_`` prefix (e.g. ``EI_STREAM_SPEC_STRICT_UNITS=true``).

Example:
    >>> from energy_integration.stream_spec.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.temperature_tolerance, cfg.strict_units)
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

from energy_integration.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "EI_STREAM_SPEC_"


# ---------------------------------------------------------------------------
# StreamSpecConfig
# ---------------------------------------------------------------------------


@dataclass
class StreamSpecConfig:
    """Complete configuration for the stream specification engine.

    Attributes:
        temperature_tolerance: Absolute tolerance (K or °C) for temperature
            comparisons (isothermal equality, direction of transfer,
            node ordering).
        strict_units: Raise UnitConversionError on unknown unit labels
            instead of treating the value as already-SI.
        schema_version: Schema version written into saved streamsets.
        interval_issue_owner: Owner id attached to configuration-level issues.
        max_streams: Maximum number of streams a session may hold.
        detail_cache_size: Maximum entries per detail-lookup cache.
        enable_provenance: Whether to record SHA-256 provenance entries.
        log_level: Logging level for the stream specification package.
    """

    # -- Validation ----------------------------------------------------------
    temperature_tolerance: float = 1e-6
    interval_issue_owner: str = "__intervals__"

    # -- Units ---------------------------------------------------------------
    strict_units: bool = False

    # -- Persistence ---------------------------------------------------------
    schema_version: str = "ei-stream-ui-v1"

    # -- Session -------------------------------------------------------------
    max_streams: int = 500
    detail_cache_size: int = 256

    # -- Provenance / logging ------------------------------------------------
    enable_provenance: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.temperature_tolerance < 0:
            raise ConfigurationError(
                "temperature_tolerance must be >= 0",
                context={"temperature_tolerance": self.temperature_tolerance},
            )
        if self.max_streams < 1:
            raise ConfigurationError(
                "max_streams must be >= 1",
                context={"max_streams": self.max_streams},
            )
        if self.detail_cache_size < 1:
            raise ConfigurationError(
                "detail_cache_size must be >= 1",
                context={"detail_cache_size": self.detail_cache_size},
            )
        if not self.interval_issue_owner:
            raise ConfigurationError("interval_issue_owner must not be empty")

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> StreamSpecConfig:
        """Build a StreamSpecConfig from environment variables.

        Every field can be overridden via ``EI_STREAM_SPEC_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).
        Malformed numbers fall back to the default with a warning.

        Returns:
            Populated StreamSpecConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _float(name: str, default: float) -> float:
            val = _env(name)
            if val is None:
                return default
            try:
                return float(val)
            except ValueError:
                logger.warning(
                    "Invalid float for %s%s=%s, using default %g",
                    prefix, name, val, default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        config = cls(
            temperature_tolerance=_float(
                "TEMPERATURE_TOLERANCE", cls.temperature_tolerance,
            ),
            interval_issue_owner=_str(
                "INTERVAL_ISSUE_OWNER", cls.interval_issue_owner,
            ),
            strict_units=_bool("STRICT_UNITS", cls.strict_units),
            schema_version=_str("SCHEMA_VERSION", cls.schema_version),
            max_streams=_int("MAX_STREAMS", cls.max_streams),
            detail_cache_size=_int(
                "DETAIL_CACHE_SIZE", cls.detail_cache_size,
            ),
            enable_provenance=_bool(
                "ENABLE_PROVENANCE", cls.enable_provenance,
            ),
            log_level=_str("LOG_LEVEL", cls.log_level),
        )

        logger.info(
            "StreamSpecConfig loaded: temperature_tolerance=%g, "
            "strict_units=%s, schema_version=%s, max_streams=%d, "
            "detail_cache_size=%d, provenance=%s",
            config.temperature_tolerance,
            config.strict_units,
            config.schema_version,
            config.max_streams,
            config.detail_cache_size,
            config.enable_provenance,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[StreamSpecConfig] = None
_config_lock = threading.Lock()


def get_config() -> StreamSpecConfig:
    """Return the singleton StreamSpecConfig, creating from env if needed."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = StreamSpecConfig.from_env()
    return _config_instance


def set_config(config: StreamSpecConfig) -> None:
    """Replace the singleton StreamSpecConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("StreamSpecConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "StreamSpecConfig",
    "get_config",
    "set_config",
    "reset_config",
]
