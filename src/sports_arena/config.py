"""Configuration and environment variable validation for sports arena."""

import os
import logging

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    """Configuration class that loads and validates environment variables."""

    def __init__(self):
        self.load_config()

    def load_config(self):
        """Load and validate all environment variables."""
        # Environment detection first, everything below may depend on it
        self.environment = os.getenv("ENVIRONMENT", "development").lower()
        self.is_production = self.environment == "production"
        self.is_development = self.environment == "development"
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        # JWT Configuration
        self.jwt_secret_key = os.getenv("JWT_SECRET_KEY")
        if not self.jwt_secret_key:
            logger.warning(
                "JWT_SECRET_KEY not set. "
                "Please set this environment variable before serving requests!"
            )
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

        # Password hashing
        self.bcrypt_rounds = int(os.getenv("BCRYPT_ROUNDS", "12"))
        self.min_password_length = int(os.getenv("MIN_PASSWORD_LENGTH", "8"))
        self.default_country_code = os.getenv("DEFAULT_COUNTRY_CODE", "FR").upper()

        # Database configuration
        self.database_url = os.getenv("DATABASE_URL")
        self.db_echo = _env_flag("DB_ECHO")
        self.db_pool_size = int(os.getenv("DB_POOL_SIZE", "10"))
        # Deployments without multi-statement transactions set this to false;
        # multi-step writes are then committed step by step.
        self.db_transactions = _env_flag("DB_TRANSACTIONS", "true")

        # Redis configuration (optional, used for notification fan-out)
        self.redis_url = os.getenv("REDIS_URL")

        # HTTP layer
        self.rate_limit_enabled = _env_flag("RATE_LIMIT_ENABLED", "true")
        self.metrics_history_size = int(os.getenv("METRICS_HISTORY_SIZE", "100"))

        # Status sweep
        self.status_sweep_enabled = _env_flag("STATUS_SWEEP_ENABLED")
        self.status_sweep_interval = int(os.getenv("STATUS_SWEEP_INTERVAL", "300"))

        # Validate configuration based on environment
        self._validate_config()

    def _validate_config(self):
        """Validate configuration and log warnings for potential issues."""
        if self.is_production:
            # Production requires secure defaults
            if not self.jwt_secret_key or len(self.jwt_secret_key) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be set and at least 32 characters in production"
                )

            if not self.database_url:
                raise ValueError("DATABASE_URL must be set in production")

            if self.bcrypt_rounds < 10:
                raise ValueError("BCRYPT_ROUNDS must be at least 10 in production")

            if not self.redis_url:
                logger.warning("REDIS_URL not set - notifications will not be published in real time")

        else:
            logger.info(f"Running in {self.environment} mode")
            if not self.database_url:
                logger.warning("DATABASE_URL not set - falling back to the local default database")

        if self.status_sweep_interval <= 0:
            raise ValueError("STATUS_SWEEP_INTERVAL must be a positive number of seconds")

        if self.metrics_history_size <= 0:
            raise ValueError("METRICS_HISTORY_SIZE must be positive")


# Global config instance
config = Config()
