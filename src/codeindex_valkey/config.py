"""
Centralized Configuration Management for the Valkey Vector Store.

This module is the single source of truth for the adapter's tunables. It uses
Pydantic's `BaseSettings` so that every parameter is typed, validated, and can
be supplied through environment variables (or a local `.env` file) without
touching the code that consumes it.

Core Features:
- **Type Safety**: All configuration parameters are strongly typed.
- **Environment Variable Loading**: Values come from environment variables,
  following the 12-Factor App methodology.
- **Clamping Validators**: Search, batching and probe tunables are clamped to
  sane ranges so that a typo cannot produce a runaway query.
- **Singleton Access**: `get_config` returns a lazily loaded, process-wide
  instance; `reset_config` exists for tests.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class VectorStoreConfig(BaseSettings):
    """
    Defines the complete configuration schema for the vector store adapter.

    Each attribute maps to an environment variable through its alias. The
    class is organized into logical sections:
    - Runtime Environment: general settings used for logging.
    - Valkey Connection: where the search engine lives and how to reach it.
    - Index Layout: vector dimensionality, distance metric and path depth.
    - Search Defaults: fallbacks used when a caller omits them.
    - Dependency Probes: tuning for the readiness probe.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # --- Runtime Environment ---
    environment: Literal["local", "dev", "staging", "prod"] = Field(
        default="local",
        alias="CODEINDEX_ENV",
        description="The deployment environment, reported in every log event.",
    )
    version: str = Field(
        default="0.0.0",
        alias="VERSION",
        description="The semantic version of the running service, used for logging.",
    )

    # --- Valkey Connection ---
    valkey_url: str = Field(
        default="redis://localhost:6380",
        alias="VALKEY_URL",
        description=(
            "Connection URL of the search engine. Bare hosts, `host:port` pairs "
            "and `valkey://` URLs are normalized before use."
        ),
    )
    valkey_password: str | None = Field(
        default=None,
        alias="VALKEY_PASSWORD",
        description="Optional password sent with AUTH on connect.",
    )
    connect_retry_delay_ms: int = Field(
        default=1000,
        alias="CONNECT_RETRY_DELAY_MS",
        description="Fixed delay between connection attempts (milliseconds).",
    )
    connect_max_attempts: int = Field(
        default=5,
        alias="CONNECT_MAX_ATTEMPTS",
        description="Connection attempts before giving up. 0 retries forever.",
    )

    # --- Index Layout ---
    vector_size: int = Field(
        default=1536,
        alias="VECTOR_SIZE",
        description="Dimensionality of stored embeddings. Must match the embedder.",
    )
    distance_metric: Literal["COSINE", "L2", "IP"] = Field(
        default="COSINE",
        alias="VECTOR_DISTANCE_METRIC",
        description="Distance metric declared on the vector field.",
    )
    path_segment_depth: int = Field(
        default=5,
        alias="PATH_SEGMENT_DEPTH",
        description="Number of `pathSegments_N` tag fields declared up front.",
    )

    # --- Search Defaults ---
    search_min_score: float = Field(
        default=0.4,
        alias="SEARCH_MIN_SCORE",
        description="Minimum similarity score a search result must reach.",
    )
    search_max_results: int = Field(
        default=50,
        alias="SEARCH_MAX_RESULTS",
        description="Number of nearest neighbours requested per search.",
    )
    delete_batch_size: int = Field(
        default=1000,
        alias="DELETE_BATCH_SIZE",
        description="Keys fetched per FT.SEARCH round when deleting by file path.",
    )

    # --- Probe Tunables ---
    probe_timeout_ms: int = Field(
        default=300, alias="PROBE_TIMEOUT_MS", description="Probe timeout in milliseconds."
    )
    probe_retries: int = Field(
        default=2, alias="PROBE_RETRIES", description="Number of retries for failed probes."
    )
    probe_cooldown_sec: int = Field(
        default=30,
        alias="PROBE_COOLDOWN_SEC",
        description="Cooldown period for failed probes (seconds).",
    )
    probe_cache_sec: int = Field(
        default=10,
        alias="PROBE_CACHE_SEC",
        description="Cache duration for successful probes (seconds).",
    )

    @field_validator("vector_size")
    @classmethod
    def validate_vector_size(cls, v: int) -> int:
        """
        Ensures that the vector size is a positive dimensionality.

        Raises:
            ValueError: If the size is zero or negative.
        """
        if v <= 0:
            raise ValueError(f"Invalid vector size: {v} (must be positive)")
        return v

    @field_validator("connect_retry_delay_ms")
    @classmethod
    def validate_connect_retry_delay(cls, v: int) -> int:
        """Clamps the reconnect delay to a reasonable range (10-60000ms)."""
        return max(10, min(v, 60_000))

    @field_validator("connect_max_attempts")
    @classmethod
    def validate_connect_max_attempts(cls, v: int) -> int:
        """Negative values mean the same as 0: retry forever."""
        return max(0, v)

    @field_validator("search_min_score")
    @classmethod
    def validate_search_min_score(cls, v: float) -> float:
        """Clamps the minimum score to the similarity range (0-1)."""
        return max(0.0, min(v, 1.0))

    @field_validator("search_max_results")
    @classmethod
    def validate_search_max_results(cls, v: int) -> int:
        """Clamps the result count to a reasonable range (1-10000)."""
        return max(1, min(v, 10_000))

    @field_validator("path_segment_depth")
    @classmethod
    def validate_path_segment_depth(cls, v: int) -> int:
        """Clamps the declared path depth to a reasonable range (1-32)."""
        return max(1, min(v, 32))

    @field_validator("delete_batch_size")
    @classmethod
    def validate_delete_batch_size(cls, v: int) -> int:
        """Clamps the delete batch to a reasonable range (1-10000)."""
        return max(1, min(v, 10_000))

    @field_validator("probe_timeout_ms")
    @classmethod
    def validate_probe_timeout(cls, v: int) -> int:
        """Clamps the probe timeout to a reasonable range (50-5000ms)."""
        return max(50, min(v, 5000))

    @field_validator("probe_retries")
    @classmethod
    def validate_probe_retries(cls, v: int) -> int:
        """Clamps the probe retries to a reasonable range (0-5)."""
        return max(0, min(v, 5))

    @field_validator("probe_cooldown_sec")
    @classmethod
    def validate_probe_cooldown(cls, v: int) -> int:
        """Clamps the probe cooldown to a reasonable range (5-300s)."""
        return max(5, min(v, 300))

    @field_validator("probe_cache_sec")
    @classmethod
    def validate_probe_cache(cls, v: int) -> int:
        """Clamps the probe cache to a reasonable range (1-60s)."""
        return max(1, min(v, 60))

    def log_summary(self, redact_secrets: bool = True) -> dict[str, str | int | float]:
        """
        Generates a configuration summary suitable for logging at startup.

        Args:
            redact_secrets (bool): If True (the default), the password part of
                the connection URL is replaced with '***'.

        Returns:
            dict[str, str | int | float]: A dictionary of key configuration values.
        """
        return {
            "environment": self.environment,
            "version": self.version,
            "valkey_url": self.redact_url(self.valkey_url) if redact_secrets else self.valkey_url,
            "vector_size": self.vector_size,
            "distance_metric": self.distance_metric,
            "path_segment_depth": self.path_segment_depth,
            "search_min_score": self.search_min_score,
            "search_max_results": self.search_max_results,
        }

    @staticmethod
    def redact_url(url: str) -> str:
        """
        Redacts the password from a URL string.

        Args:
            url (str): The URL containing a potential password.

        Returns:
            str: The URL with the password part replaced by '***'.
        """
        if "@" in url and "://" in url:
            scheme, rest = url.split("://", 1)
            if "@" in rest:
                auth, host = rest.split("@", 1)
                if ":" in auth:
                    user, _ = auth.split(":", 1)
                    return f"{scheme}://{user}:***@{host}"
        return url


# Lazily loaded by `get_config`.
_config: VectorStoreConfig | None = None


def get_config() -> VectorStoreConfig:
    """
    Provides access to the global, singleton `VectorStoreConfig` instance.

    Returns:
        VectorStoreConfig: The single, process-wide configuration instance.

    Raises:
        pydantic.ValidationError: If the environment does not match the schema
            defined in `VectorStoreConfig`.
    """
    global _config
    if _config is None:
        _config = VectorStoreConfig()
    return _config


def reset_config() -> None:
    """
    Resets the global configuration singleton.

    Intended for tests that change environment variables and need the
    configuration reloaded.
    """

    global _config
    _config = None
