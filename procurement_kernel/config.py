"""
Reconciliation Configuration Schema.

Defines the structure and sensible defaults for the reconciliation engine.
Values are taken from defaults, a YAML file, a plain dict, or the
environment.

None of these settings can relax a KernelInvariant: they tune timeouts,
numbering and rounding, never whether over-receipt is allowed.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Self

import yaml

from procurement_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"


@dataclass
class ReconciliationConfig:
    """
    Configuration schema for the reconciliation engine.

    Override at instantiation with deployment-specific values:

        config = ReconciliationConfig(
            lock_timeout_seconds=2.0,
            consistency_retry_limit=1,
        )
        config = ReconciliationConfig.from_yaml("config/reconciliation.yaml")
    """

    # Persistence
    database_url: str = DEFAULT_DATABASE_URL

    # Per-order serialization
    lock_timeout_seconds: float = 5.0
    consistency_retry_limit: int = 1

    # Amounts
    money_decimal_places: int = 2
    default_currency: str = "USD"

    # Document numbering
    order_number_prefix: str = "PO"
    receipt_number_prefix: str = "PR"
    document_number_width: int = 4

    def __post_init__(self):
        if self.lock_timeout_seconds <= 0:
            raise ValueError(
                f"lock_timeout_seconds must be positive, got {self.lock_timeout_seconds}"
            )
        if self.consistency_retry_limit < 0:
            raise ValueError(
                f"consistency_retry_limit must be >= 0, got {self.consistency_retry_limit}"
            )
        if self.money_decimal_places < 0:
            raise ValueError(
                f"money_decimal_places must be >= 0, got {self.money_decimal_places}"
            )
        logger.info(
            "reconciliation_config_initialized",
            extra={
                "lock_timeout_seconds": self.lock_timeout_seconds,
                "consistency_retry_limit": self.consistency_retry_limit,
                "money_decimal_places": self.money_decimal_places,
                "default_currency": self.default_currency,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with built-in defaults."""
        logger.info("reconciliation_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a dictionary (e.g. loaded from a file)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown reconciliation config keys: {unknown}")
        logger.info(
            "reconciliation_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Path | str) -> Self:
        """
        Load config from a YAML file.

        The file may either hold the settings at top level or nest them
        under a ``reconciliation`` key.

        Raises:
            FileNotFoundError: if the file does not exist.
            yaml.YAMLError: if the file contains invalid YAML.
            ValueError: on unknown keys.
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {path}, got {type(data).__name__}")
        data = data.get("reconciliation", data)
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> Self:
        """Build config from PROCUREMENT_* environment variables over defaults."""
        data: dict[str, Any] = {}
        if url := os.getenv("PROCUREMENT_DATABASE_URL"):
            data["database_url"] = url
        if timeout := os.getenv("PROCUREMENT_LOCK_TIMEOUT_SECONDS"):
            data["lock_timeout_seconds"] = float(timeout)
        if retries := os.getenv("PROCUREMENT_CONSISTENCY_RETRY_LIMIT"):
            data["consistency_retry_limit"] = int(retries)
        return cls(**data)
