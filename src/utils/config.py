"""
Runtime configuration for the Lambda code.

Values come from the environment the CDK stack injects; defaults keep local
runs and tests working without any setup.
"""

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class AppConfig:
    """Table names and bootstrap tuning."""

    environment: str = "dev"
    aws_region: str = "eu-west-2"

    customers_table: str = "cabletv-customers"
    vc_inventory_table: str = "cabletv-vc-inventory"
    action_requests_table: str = "cabletv-action-requests"
    packages_table: str = "cabletv-packages"
    payments_table: str = "cabletv-payments"
    areas_table: str = "cabletv-areas"

    # Only used while connecting to tables on cold start
    bootstrap_attempts: int = 3
    bootstrap_backoff_seconds: float = 0.2

    @classmethod
    def from_environment(cls) -> "AppConfig":
        """Load settings from environment variables."""
        defaults = cls()
        return cls(
            environment=os.environ.get("ENVIRONMENT", defaults.environment),
            aws_region=os.environ.get("AWS_REGION", defaults.aws_region),
            customers_table=os.environ.get("CUSTOMERS_TABLE", defaults.customers_table),
            vc_inventory_table=os.environ.get("VC_INVENTORY_TABLE", defaults.vc_inventory_table),
            action_requests_table=os.environ.get(
                "ACTION_REQUESTS_TABLE", defaults.action_requests_table
            ),
            packages_table=os.environ.get("PACKAGES_TABLE", defaults.packages_table),
            payments_table=os.environ.get("PAYMENTS_TABLE", defaults.payments_table),
            areas_table=os.environ.get("AREAS_TABLE", defaults.areas_table),
            bootstrap_attempts=int(
                os.environ.get("BOOTSTRAP_ATTEMPTS", defaults.bootstrap_attempts)
            ),
            bootstrap_backoff_seconds=float(
                os.environ.get("BOOTSTRAP_BACKOFF_SECONDS", defaults.bootstrap_backoff_seconds)
            ),
        )
