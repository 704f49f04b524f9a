"""
Main CDK Stack for the cable TV admin console backend.
"""

from aws_cdk import (
    Stack,
    Tags,
    CfnOutput,
)
from constructs import Construct

from infrastructure.constructs.data_layer import DataLayerConstruct
from infrastructure.constructs.api_layer import ApiLayerConstruct
from infrastructure.config.settings import Settings


class CabletvAdminStack(Stack):
    """Main stack wiring all constructs together."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        settings: Settings,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # Global tags for cost/accounting.
        Tags.of(self).add("Project", "cabletv-admin")
        Tags.of(self).add("Environment", settings.environment)
        Tags.of(self).add("ManagedBy", "cdk")

        # 1) Data layer.
        data_construct = DataLayerConstruct(
            self,
            "DataLayer",
            environment=settings.environment,
            table_prefix=settings.table_prefix,
        )

        # 2) API layer (single Lambda).
        table_names = {
            "CUSTOMERS_TABLE": data_construct.customers_table.table_name,
            "VC_INVENTORY_TABLE": data_construct.vc_inventory_table.table_name,
            "ACTION_REQUESTS_TABLE": data_construct.action_requests_table.table_name,
            "PACKAGES_TABLE": data_construct.packages_table.table_name,
            "PAYMENTS_TABLE": data_construct.payments_table.table_name,
            "AREAS_TABLE": data_construct.areas_table.table_name,
        }
        api_construct = ApiLayerConstruct(
            self,
            "ApiLayer",
            environment=settings.environment,
            table_names=table_names,
            jwt_issuer=settings.jwt_issuer,
            jwt_audience=settings.jwt_audience,
            log_level=settings.log_level,
            lambda_memory_mb=settings.lambda_memory_mb,
            lambda_timeout_seconds=settings.lambda_timeout_seconds,
        )

        # Approvals and payment collection write several tables in one transaction.
        for table in data_construct.tables.values():
            table.grant_read_write_data(api_construct.main_lambda)

        # Outputs to quickly find resources.
        CfnOutput(self, "ApiEndpoint", value=api_construct.api.api_endpoint)
        for env_name, table_name in table_names.items():
            CfnOutput(self, env_name.title().replace("_", ""), value=table_name)
