"""
Environment-specific configuration settings.

Cost-optimized defaults for development/testing.
"""

from dataclasses import dataclass, field
import os
from typing import List


@dataclass
class Settings:
    """Deployment settings with cost-optimized defaults."""

    # Environment
    environment: str = "dev"
    aws_region: str = "eu-west-2"  # Default AWS region

    # Lambda Configuration
    lambda_memory_mb: int = 512
    lambda_timeout_seconds: int = 30
    log_level: str = "INFO"

    # JWT authorizer (Cognito user pool or any OIDC issuer); empty disables it
    jwt_issuer: str = ""
    jwt_audience: List[str] = field(default_factory=list)

    # Table names are prefixed per environment
    table_prefix: str = "cabletv"

    def table_name(self, suffix: str) -> str:
        return f"{self.table_prefix}-{self.environment}-{suffix}"

    @classmethod
    def from_environment(cls) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ.get("ENVIRONMENT", "dev")
        region = os.environ.get("AWS_REGION", cls.aws_region)
        jwt_issuer = os.environ.get("JWT_ISSUER", "")
        jwt_audience = [
            value.strip()
            for value in os.environ.get("JWT_AUDIENCE", "").split(",")
            if value.strip()
        ]

        # Production overrides
        if env == "prod":
            return cls(
                environment="prod",
                aws_region=region,
                lambda_memory_mb=1024,
                lambda_timeout_seconds=60,
                log_level="WARNING",
                jwt_issuer=jwt_issuer,
                jwt_audience=jwt_audience,
            )

        return cls(
            environment=env,
            aws_region=region,
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            jwt_issuer=jwt_issuer,
            jwt_audience=jwt_audience,
        )
