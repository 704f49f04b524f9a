"""Pydantic documents and API payloads."""

from models.action_request import (  # noqa: F401
    ActionRequest,
    ActionType,
    Decision,
    RequestStatus,
    RequestSummary,
    ResolveActionRequest,
    SubmitActionRequest,
)
from models.actor import Actor, Role  # noqa: F401
from models.customer import (  # noqa: F401
    Connection,
    ConnectionInput,
    CustomPlan,
    Customer,
    CustomerInput,
    CustomerStatus,
    LegacyFields,
)
from models.area import Area, AreaInput, AreaUpdate  # noqa: F401
from models.package import Package, PackageInput, PackageUpdate  # noqa: F401
from models.payment import (  # noqa: F401
    Payment,
    PaymentInput,
    PaymentMethod,
    PaymentSummary,
)
from models.response import ApiResponse  # noqa: F401
from models.vc_inventory import (  # noqa: F401
    BulkCreateResult,
    OwnershipHistoryEntry,
    StatusHistoryEntry,
    VCCreateInput,
    VCInventoryItem,
    VCReassignInput,
    VCStatus,
    VCStatusChangeInput,
)
