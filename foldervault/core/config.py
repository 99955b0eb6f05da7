"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List, Optional


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Uses Pydantic for configuration validation, preventing
    common security issues like wildcard CORS.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:3001",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./foldervault.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(
        default=5,
        description="Number of persistent database connections"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Extra connections allowed during traffic bursts"
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a connection from the pool before raising"
    )
    db_pool_recycle: int = Field(
        default=1800,
        description="Seconds before a connection is recycled (prevents stale connections)"
    )

    # Authentication
    # JWT_SECRET_KEY: signing key for bearer tokens. Default is insecure; override in production.
    # AUTH_ENABLED: when False, every request runs as the development identity.
    jwt_secret_key: str = Field(
        default="dev-insecure-key-change-me",
        description="JWT signing secret (override in production)"
    )
    jwt_algorithm: str = Field(default="HS256")
    auth_enabled: bool = Field(
        default=False,
        description="Enable bearer token authentication (False for development)"
    )
    dev_user_id: str = Field(
        default="dev-user",
        description="Identity used for every request when auth is disabled"
    )

    # Rate Limiting
    rate_limit_per_minute: int = Field(
        default=120,
        description="Maximum requests per client per minute"
    )
    share_rate_limit_per_minute: int = Field(
        default=30,
        description="Maximum unauthenticated share-link requests per client per minute"
    )

    # Object storage (S3 or any S3-compatible endpoint such as MinIO)
    s3_bucket_name: str = Field(
        default="",
        description="Bucket holding file contents and folder placeholders"
    )
    s3_region: str = Field(default="us-east-1")
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible storage (empty = AWS)"
    )
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    # Every object-store call carries these; a timeout surfaces as StorageUnavailableError.
    s3_connect_timeout: float = Field(default=5.0)
    s3_read_timeout: float = Field(default=30.0)
    s3_max_attempts: int = Field(default=3)

    # Presigned URL lifetimes
    presign_default_ttl_seconds: int = Field(
        default=3600,
        description="TTL for direct download URLs"
    )
    presign_max_ttl_seconds: int = Field(
        default=168 * 3600,
        description="Upper bound for any presigned URL (SigV4 allows at most 7 days)"
    )

    # Sharing
    public_base_url: str = Field(
        default="http://localhost:3000",
        description="Origin used to build share links when the request carries no Origin header"
    )
    share_token_bytes: int = Field(default=32)

    # Hierarchy
    # Recursive tree responses nest one model per level, so this stays well
    # under the serializer's recursion limit.
    max_tree_depth: int = Field(
        default=100,
        ge=1,
        le=200,
        description="Maximum folder nesting below a root; also the hop bound for parent walks"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        # SECURITY: Prevent wildcard CORS
        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('presign_max_ttl_seconds')
    @classmethod
    def validate_presign_max(cls, v: int) -> int:
        if v <= 0 or v > 7 * 24 * 3600:
            raise ValueError("presign_max_ttl_seconds must be between 1 second and 7 days")
        return v

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings use insecure defaults.
        In development, returns silently and main.py logs warnings.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if self.jwt_secret_key == "dev-insecure-key-change-me":
            errors.append(
                "JWT_SECRET_KEY is using the default insecure value. "
                "Generate a secure key: openssl rand -hex 32"
            )

        if not self.auth_enabled:
            errors.append(
                "AUTH_ENABLED is false. "
                "Authentication must be enabled in production."
            )

        if not self.s3_bucket_name:
            errors.append("S3_BUCKET_NAME is empty. File storage cannot work without a bucket.")

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
