"""Centralized configuration for batchguard."""

import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    batchguard configuration with environment variable overrides.

    All configuration values are centralized here with sensible defaults.
    Values can be overridden via environment variables.
    """

    # ========================================================================
    # Redis Configuration
    # ========================================================================
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    REDIS_MAX_CONNECTIONS: int = int(os.getenv("REDIS_MAX_CONNECTIONS", "100"))
    REDIS_SOCKET_CONNECT_TIMEOUT: float = float(
        os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", "2")
    )
    REDIS_SOCKET_TIMEOUT: float = float(os.getenv("REDIS_SOCKET_TIMEOUT", "2"))
    REDIS_CONNECT_RETRIES: int = int(os.getenv("REDIS_CONNECT_RETRIES", "5"))
    REDIS_CONNECT_RETRY_DELAY: float = float(
        os.getenv("REDIS_CONNECT_RETRY_DELAY", "0.5")
    )
    REDIS_CONNECT_RETRY_MAX_DELAY: float = float(
        os.getenv("REDIS_CONNECT_RETRY_MAX_DELAY", "5")
    )
    REDIS_SLOW_OPERATION_MS: float = float(os.getenv("REDIS_SLOW_OPERATION_MS", "100"))

    # ========================================================================
    # Lock Configuration
    # ========================================================================
    LOCK_KEY_PREFIX: str = "lock:"
    LOCK_DEFAULT_TTL_MS: int = int(os.getenv("LOCK_DEFAULT_TTL_MS", "30000"))
    LOCK_RETRY_DELAY_MS: int = int(os.getenv("LOCK_RETRY_DELAY_MS", "100"))
    LOCK_MAX_RETRIES: int = int(os.getenv("LOCK_MAX_RETRIES", "10"))

    # ========================================================================
    # Task Pool Configuration
    # ========================================================================
    POOL_MAX_CONCURRENT: int = int(os.getenv("POOL_MAX_CONCURRENT", "4"))
    POOL_RETRY_ATTEMPTS: int = int(os.getenv("POOL_RETRY_ATTEMPTS", "3"))
    POOL_INITIAL_RETRY_DELAY_MS: int = int(
        os.getenv("POOL_INITIAL_RETRY_DELAY_MS", "1000")
    )
    POOL_MAX_RETRY_DELAY_MS: int = int(os.getenv("POOL_MAX_RETRY_DELAY_MS", "32000"))
    POOL_PROGRESS_LOG_INTERVAL: int = int(os.getenv("POOL_PROGRESS_LOG_INTERVAL", "10"))

    # ========================================================================
    # Cache Warmup
    # ========================================================================
    WARMUP_ENABLED: bool = _env_bool("WARMUP_ENABLED", "true")
    WARMUP_TIMEOUT_MS: int = int(os.getenv("WARMUP_TIMEOUT_MS", "30000"))

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails
        """
        errors = []

        # Redis settings
        if cls.REDIS_MAX_CONNECTIONS <= 0:
            errors.append(
                f"REDIS_MAX_CONNECTIONS must be > 0, got {cls.REDIS_MAX_CONNECTIONS}"
            )
        if cls.REDIS_SOCKET_CONNECT_TIMEOUT <= 0:
            errors.append(
                "REDIS_SOCKET_CONNECT_TIMEOUT must be > 0, "
                f"got {cls.REDIS_SOCKET_CONNECT_TIMEOUT}"
            )
        if cls.REDIS_SOCKET_TIMEOUT <= 0:
            errors.append(
                f"REDIS_SOCKET_TIMEOUT must be > 0, got {cls.REDIS_SOCKET_TIMEOUT}"
            )
        if cls.REDIS_CONNECT_RETRIES < 1:
            errors.append(
                f"REDIS_CONNECT_RETRIES must be >= 1, got {cls.REDIS_CONNECT_RETRIES}"
            )

        # Lock settings
        if cls.LOCK_DEFAULT_TTL_MS <= 0:
            errors.append(f"LOCK_DEFAULT_TTL_MS must be > 0, got {cls.LOCK_DEFAULT_TTL_MS}")
        if cls.LOCK_RETRY_DELAY_MS < 0:
            errors.append(f"LOCK_RETRY_DELAY_MS must be >= 0, got {cls.LOCK_RETRY_DELAY_MS}")
        if cls.LOCK_MAX_RETRIES < 1:
            errors.append(f"LOCK_MAX_RETRIES must be >= 1, got {cls.LOCK_MAX_RETRIES}")

        # Pool settings
        if cls.POOL_MAX_CONCURRENT < 1:
            errors.append(f"POOL_MAX_CONCURRENT must be >= 1, got {cls.POOL_MAX_CONCURRENT}")
        if cls.POOL_RETRY_ATTEMPTS < 1:
            errors.append(f"POOL_RETRY_ATTEMPTS must be >= 1, got {cls.POOL_RETRY_ATTEMPTS}")
        if cls.POOL_INITIAL_RETRY_DELAY_MS < 0:
            errors.append(
                "POOL_INITIAL_RETRY_DELAY_MS must be >= 0, "
                f"got {cls.POOL_INITIAL_RETRY_DELAY_MS}"
            )
        if cls.POOL_MAX_RETRY_DELAY_MS < cls.POOL_INITIAL_RETRY_DELAY_MS:
            errors.append(
                "POOL_MAX_RETRY_DELAY_MS must be >= POOL_INITIAL_RETRY_DELAY_MS, "
                f"got {cls.POOL_MAX_RETRY_DELAY_MS} < {cls.POOL_INITIAL_RETRY_DELAY_MS}"
            )

        if cls.WARMUP_TIMEOUT_MS <= 0:
            errors.append(f"WARMUP_TIMEOUT_MS must be > 0, got {cls.WARMUP_TIMEOUT_MS}")

        if errors:
            raise ValueError(f"Config validation failed: {'; '.join(errors)}")

        return True
