"""Configuration for the idempotent withdrawals service and its client.

This module provides two immutable configuration classes:

- WithdrawalsConfig: server-side settings (routing, idempotency key limits,
  binding expiry, dangling binding policy, logging).
- ClientConfig: client-side settings (server location, request timeout,
  snapshot slot and TTL).

Example:
    Basic usage with defaults:

        >>> config = WithdrawalsConfig()
        >>> config.idempotency_ttl_seconds is None
        True

    Custom configuration:

        >>> config = WithdrawalsConfig(
        ...     route_prefix="/api/v1",
        ...     idempotency_ttl_seconds=86400,
        ...     dangling_key_policy="reject",
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['WITHDRAWALS_ROUTE_PREFIX'] = '/api/v1'
        >>> os.environ['WITHDRAWALS_IDEMPOTENCY_TTL_SECONDS'] = '3600'
        >>> config = WithdrawalsConfig.from_env()

    Loading from dictionary:

        >>> config = ClientConfig.from_dict({'base_url': 'http://localhost:8000'})
"""

import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _normalize_prefix(v: str) -> str:
    """Normalize a route prefix to ``""`` or ``/segment[/segment...]``."""
    v = v.strip().strip("/")
    return f"/{v}" if v else ""


def _values_from_env(model: type[BaseModel], prefix: str) -> dict[str, Any]:
    """Collect raw field values for ``model`` from prefixed environment variables.

    Values are passed through as strings; pydantic handles the conversion.
    Empty strings for optional fields are treated as None.
    """
    config_dict: dict[str, Any] = {}
    for field_name, field in model.model_fields.items():
        env_value = os.environ.get(f"{prefix}{field_name.upper()}")
        if env_value is None:
            continue
        if env_value == "" and field.default is None:
            config_dict[field_name] = None
        else:
            config_dict[field_name] = env_value
    return config_dict


class WithdrawalsConfig(BaseModel):
    """Configuration for the withdrawals HTTP service.

    Attributes:
        route_prefix: Path prefix for the withdrawal routes, e.g. "/api/v1".
            Default is "" so routes are served at "/withdrawals".
        max_key_length: Maximum accepted idempotency key length (1-1024).
            Default is 255.
        idempotency_ttl_seconds: Lifetime of an idempotency binding in seconds
            (1-31536000), or None to keep bindings forever. Default is None.
        cleanup_interval_seconds: Interval of the background task that evicts
            expired bindings (1-86400). Only used when a TTL is set.
            Default is 300.
        dangling_key_policy: What to do when a key is bound to a withdrawal
            the record store no longer has. "recreate" creates a new
            withdrawal and rebinds the key; "reject" fails with a 500.
            Default is "recreate".
        log_level: Log level for structured logging. Default is "INFO".
        json_logs: Emit JSON logs (True) or console logs (False).

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    route_prefix: str = Field(
        default="",
        description="Path prefix for withdrawal routes",
    )
    max_key_length: int = Field(
        default=255,
        description="Maximum idempotency key length (1-1024)",
    )
    idempotency_ttl_seconds: int | None = Field(
        default=None,
        description="Lifetime of idempotency bindings in seconds, None for no expiry",
    )
    cleanup_interval_seconds: int = Field(
        default=300,
        description="Interval between binding cleanup runs (1-86400)",
    )
    dangling_key_policy: Literal["recreate", "reject"] = Field(
        default="recreate",
        description="Handling of keys bound to missing withdrawals",
    )
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool = Field(default=True, description="Emit JSON logs")

    model_config = {"frozen": True}

    @field_validator("route_prefix")
    @classmethod
    def validate_route_prefix(cls, v: str) -> str:
        """Normalize the route prefix.

        Example:
            >>> WithdrawalsConfig(route_prefix="api/v1/").route_prefix
            '/api/v1'
        """
        return _normalize_prefix(v)

    @field_validator("max_key_length")
    @classmethod
    def validate_max_key_length(cls, v: int) -> int:
        """Validate the key length limit is between 1 and 1024."""
        if not (1 <= v <= 1024):
            raise ValueError(f"max_key_length must be between 1 and 1024, got {v}")
        return v

    @field_validator("idempotency_ttl_seconds")
    @classmethod
    def validate_idempotency_ttl_seconds(cls, v: int | None) -> int | None:
        """Validate the binding TTL is None or between 1 second and 365 days."""
        if v is not None and not (1 <= v <= 31536000):
            raise ValueError(
                f"idempotency_ttl_seconds must be between 1 and 31536000 (365 days), got {v}"
            )
        return v

    @field_validator("cleanup_interval_seconds")
    @classmethod
    def validate_cleanup_interval_seconds(cls, v: int) -> int:
        """Validate the cleanup interval is between 1 second and 1 day."""
        if not (1 <= v <= 86400):
            raise ValueError(f"cleanup_interval_seconds must be between 1 and 86400, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. Valid levels are: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        return level

    @classmethod
    def from_env(cls, prefix: str = "WITHDRAWALS_") -> "WithdrawalsConfig":
        """Create configuration from environment variables.

        Variable names are the uppercase field names with the prefix, e.g.
        ``WITHDRAWALS_IDEMPOTENCY_TTL_SECONDS``. Missing variables keep their
        defaults.

        Args:
            prefix: Prefix for environment variable names.

        Returns:
            WithdrawalsConfig populated from the environment.
        """
        return cls(**_values_from_env(cls, prefix))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "WithdrawalsConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)


class ClientConfig(BaseModel):
    """Configuration for the withdrawals client.

    Attributes:
        base_url: Base URL of the withdrawals service.
        route_prefix: Path prefix the service mounts its routes under.
        request_timeout_seconds: Per-request timeout. A timed-out request is
            reported as a network error and may be retried with the same key.
        snapshot_slot: Storage slot name for the client snapshot.
        snapshot_ttl_seconds: Maximum age of a resumable snapshot (1-86400).
            Default is 300 (5 minutes).
        snapshot_dir: Directory for file-backed snapshots. None keeps
            snapshots in memory only.
    """

    base_url: str = Field(default="http://localhost:8000")
    route_prefix: str = Field(default="")
    request_timeout_seconds: float = Field(default=10.0)
    snapshot_slot: str = Field(default="withdraw:last", min_length=1)
    snapshot_ttl_seconds: int = Field(default=300)
    snapshot_dir: str | None = Field(default=None)

    model_config = {"frozen": True}

    @field_validator("route_prefix")
    @classmethod
    def validate_route_prefix(cls, v: str) -> str:
        """Normalize the route prefix."""
        return _normalize_prefix(v)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and strip the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got {v!r}")
        return v.rstrip("/")

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_request_timeout_seconds(cls, v: float) -> float:
        """Validate the request timeout is positive."""
        if v <= 0:
            raise ValueError(f"request_timeout_seconds must be > 0, got {v}")
        return v

    @field_validator("snapshot_ttl_seconds")
    @classmethod
    def validate_snapshot_ttl_seconds(cls, v: int) -> int:
        """Validate the snapshot TTL is between 1 second and 1 day."""
        if not (1 <= v <= 86400):
            raise ValueError(f"snapshot_ttl_seconds must be between 1 and 86400, got {v}")
        return v

    @classmethod
    def from_env(cls, prefix: str = "WITHDRAW_CLIENT_") -> "ClientConfig":
        """Create configuration from environment variables."""
        return cls(**_values_from_env(cls, prefix))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "ClientConfig":
        """Create configuration from a dictionary."""
        return cls(**config_dict)
