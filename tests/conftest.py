"""
Pytest configuration to ensure paths are set up correctly for tests.

This allows imports like `from handlers import health_check` to work
when running tests, simulating the Lambda environment where code
is deployed from the src/ directory.

DynamoDB is mocked with moto; the ``tables`` fixture creates the same
tables and GSIs the CDK data layer provisions.
"""

import os
import sys
from pathlib import Path

import boto3
import pytest


def _ensure_paths_on_sys_path() -> None:
    """Add repository root AND src/ to sys.path if missing.

    The src/ directory is added to simulate Lambda's import behavior,
    where Code.from_asset("src") makes src/ the root of the package.
    """
    repo_root = Path(__file__).resolve().parents[1]
    src_root = repo_root / "src"

    # Add repo root first (for imports like infrastructure.*)
    root_str = str(repo_root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    # Add src/ for Lambda-style imports (from handlers import ...)
    src_str = str(src_root)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_paths_on_sys_path()

# Ensure boto3 has offline-friendly defaults so tests do not require AWS access.
os.environ.setdefault("AWS_REGION", "eu-west-2")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-2")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_SESSION_TOKEN", "test")
os.environ.setdefault("ENVIRONMENT", "dev")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Create a default boto3 session so resources/clients do not error during import.
boto3.setup_default_session(region_name="eu-west-2")

from moto import mock_aws  # noqa: E402

from models.actor import Actor, Role  # noqa: E402
from utils.config import AppConfig  # noqa: E402

TABLE_INDEXES = {
    "customers_table": ("collector_name",),
    "vc_inventory_table": ("vc_number", "customer_id"),
    "action_requests_table": ("employee_id",),
    "packages_table": ("name",),
    "payments_table": ("customer_id", "customer_area"),
    "areas_table": (),
}


def _create_table(dynamodb, name, index_keys):
    attributes = [{"AttributeName": "id", "AttributeType": "S"}]
    attributes.extend({"AttributeName": key, "AttributeType": "S"} for key in index_keys)
    kwargs = dict(
        TableName=name,
        KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
        AttributeDefinitions=attributes,
        BillingMode="PAY_PER_REQUEST",
    )
    if index_keys:
        kwargs["GlobalSecondaryIndexes"] = [
            {
                "IndexName": f"{key}-index",
                "KeySchema": [{"AttributeName": key, "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
            for key in index_keys
        ]
    return dynamodb.create_table(**kwargs)


@pytest.fixture
def dynamodb(monkeypatch):
    """Moto-backed DynamoDB resource with every application table created."""
    with mock_aws():
        resource = boto3.resource("dynamodb", region_name="eu-west-2")
        config = AppConfig.from_environment()
        for attr, index_keys in TABLE_INDEXES.items():
            _create_table(resource, getattr(config, attr), index_keys)
        monkeypatch.setattr("repositories.dynamodb_repo._dynamodb", resource)
        yield resource


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", name="Asha Admin", role=Role.ADMIN)


@pytest.fixture
def employee():
    return Actor(user_id="emp-1", name="Ravi", role=Role.EMPLOYEE, assigned_areas=["North"])


@pytest.fixture
def other_employee():
    return Actor(user_id="emp-2", name="Meena", role=Role.EMPLOYEE, assigned_areas=["South"])
