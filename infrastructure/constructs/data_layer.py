"""
Data layer construct: the DynamoDB document tables.

Every table is keyed by ``id``; secondary lookups go through GSIs whose key
attributes are only written when set.
"""

from typing import Dict, Tuple

from aws_cdk import (
    RemovalPolicy,
    aws_dynamodb as dynamodb,
)
from constructs import Construct

# construct id -> (table suffix, GSI partition keys)
TABLES: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "Customers": ("customers", ("collector_name",)),
    "VcInventory": ("vc-inventory", ("vc_number", "customer_id")),
    "ActionRequests": ("action-requests", ("employee_id",)),
    "Packages": ("packages", ("name",)),
    "Payments": ("payments", ("customer_id", "customer_area")),
    "Areas": ("areas", ()),
}


class DataLayerConstruct(Construct):
    """Provision one document table per resource."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        environment: str,
        table_prefix: str = "cabletv",
    ) -> None:
        super().__init__(scope, construct_id)

        removal_policy = RemovalPolicy.RETAIN if environment == "prod" else RemovalPolicy.DESTROY
        self.tables: Dict[str, dynamodb.Table] = {}

        for construct_name, (suffix, index_keys) in TABLES.items():
            table = dynamodb.Table(
                self,
                construct_name,
                table_name=f"{table_prefix}-{environment}-{suffix}",
                partition_key=dynamodb.Attribute(name="id", type=dynamodb.AttributeType.STRING),
                billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
                point_in_time_recovery=environment == "prod",
                removal_policy=removal_policy,
            )
            for key in index_keys:
                table.add_global_secondary_index(
                    index_name=f"{key}-index",
                    partition_key=dynamodb.Attribute(name=key, type=dynamodb.AttributeType.STRING),
                    projection_type=dynamodb.ProjectionType.ALL,
                )
            self.tables[suffix] = table

        self.customers_table = self.tables["customers"]
        self.vc_inventory_table = self.tables["vc-inventory"]
        self.action_requests_table = self.tables["action-requests"]
        self.packages_table = self.tables["packages"]
        self.payments_table = self.tables["payments"]
        self.areas_table = self.tables["areas"]
