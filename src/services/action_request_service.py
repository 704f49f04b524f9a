"""
Action request workflow.

Employees submit activation / deactivation / plan change requests against one
of a customer's VCs; admins approve or reject them. ``pending`` is the only
state that can be resolved, and both outcomes are terminal.

Approval is a single transaction: the target customer, the matching VC
inventory item (when one exists) and the request itself are written together,
each conditioned on the version that was read. If the customer, the VC or the
requested package cannot be found, or the package is no longer active, nothing
is written and the request stays pending. Plan changes can only be submitted
for active packages.
"""

from __future__ import annotations

from typing import List, Optional

from models.action_request import (
    ActionRequest,
    ActionType,
    Decision,
    RequestStatus,
    RequestSummary,
    ResolveActionRequest,
    SubmitActionRequest,
)
from models.actor import Actor
from models.customer import CustomerStatus, utcnow
from models.vc_inventory import VCStatus
from repositories.dynamodb_repo import DynamoDbRepository, TransactionWriter
from services.customer_service import (
    CustomerService,
    describe_vc,
    with_connection_plan,
    with_connection_status,
)
from services.package_service import PackageService
from services.vc_inventory_service import VCInventoryService, with_status
from utils.config import AppConfig
from utils.error_handling import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from utils.logging_config import get_logger
from utils.permissions import (
    require_admin,
    require_area_access,
    require_authenticated,
    require_request_access,
)

logger = get_logger(__name__)

EMPLOYEE_INDEX = "employee_id-index"
DEFAULT_APPROVAL_NOTE = "Request approved by admin"

TARGET_STATUS = {
    ActionType.ACTIVATION: CustomerStatus.ACTIVE,
    ActionType.DEACTIVATION: CustomerStatus.INACTIVE,
}


class ActionRequestService:
    """Submit, review and resolve action requests."""

    def __init__(
        self,
        repository: Optional[DynamoDbRepository] = None,
        customers: Optional[CustomerService] = None,
        inventory: Optional[VCInventoryService] = None,
        packages: Optional[PackageService] = None,
    ):
        self.repository = repository or DynamoDbRepository(
            AppConfig.from_environment().action_requests_table
        )
        self.customers = customers or CustomerService()
        self.inventory = inventory or VCInventoryService(customers=self.customers.repository)
        self.packages = packages or PackageService()

    @classmethod
    def from_environment(cls) -> "ActionRequestService":
        config = AppConfig.from_environment()
        customers = CustomerService.from_environment()
        return cls(
            DynamoDbRepository.connect(
                config.action_requests_table,
                attempts=config.bootstrap_attempts,
                backoff_base=config.bootstrap_backoff_seconds,
            ),
            customers=customers,
            inventory=VCInventoryService.from_environment(),
            packages=PackageService.from_environment(),
        )

    def fetch(self, request_id: str) -> ActionRequest:
        request = self.repository.get_model(ActionRequest, request_id)
        if request is None:
            raise NotFoundError(f"Action request {request_id} not found")
        return request

    def submit(self, actor: Optional[Actor], payload: SubmitActionRequest) -> ActionRequest:
        """Store a new pending request raised by ``actor``."""
        actor = require_authenticated(actor, "submit action request")
        customer = self.customers.fetch(payload.customer_id)
        require_area_access(actor, customer.collector_name, "submit action request")
        if not customer.owns_vc(payload.vc_number):
            raise ValidationError(
                f"VC {payload.vc_number} does not belong to customer {customer.id}"
            )
        if payload.action_type == ActionType.PLAN_CHANGE:
            package = self.packages.find_by_name(payload.requested_plan or "")
            if package is None or not package.is_active:
                raise ValidationError(f"Package {payload.requested_plan} is not offered")

        current_status, current_plan = describe_vc(customer, payload.vc_number)
        request = ActionRequest(
            customer_id=customer.id,
            customer_name=customer.name,
            vc_number=payload.vc_number,
            employee_id=actor.user_id,
            employee_name=actor.name,
            action_type=payload.action_type,
            current_status=current_status,
            current_plan=current_plan,
            requested_plan=payload.requested_plan,
            reason=payload.reason,
        )
        stored = self.repository.save(request)
        logger.info(
            "Action request submitted",
            extra={
                "request_id": stored.id,
                "action_type": stored.action_type.value,
                "customer_id": stored.customer_id,
                "employee_id": actor.user_id,
            },
        )
        return stored

    def resolve(
        self,
        actor: Optional[Actor],
        request_id: str,
        payload: ResolveActionRequest,
        expected_version: Optional[int] = None,
    ) -> ActionRequest:
        """Approve or reject a pending request."""
        actor = require_admin(actor, "resolve action request")
        request = self.fetch(request_id)
        if not request.is_pending:
            raise InvalidStateError(f"Action request {request_id} is already {request.status.value}")
        if expected_version is not None and expected_version != request.version:
            raise ConflictError()

        notes = (payload.admin_notes or "").strip()
        if payload.decision == Decision.REJECT:
            if not notes:
                raise ValidationError("Rejection reason required")
            return self._reject(actor, request, notes)
        return self._approve(actor, request, notes or DEFAULT_APPROVAL_NOTE)

    def _reviewed(
        self, actor: Actor, request: ActionRequest, status: RequestStatus, notes: str
    ) -> ActionRequest:
        return request.model_copy(
            update={
                "status": status,
                "reviewed_by": actor.name,
                "reviewed_by_id": actor.user_id,
                "review_date": utcnow(),
                "admin_notes": notes,
            }
        )

    def _reject(self, actor: Actor, request: ActionRequest, notes: str) -> ActionRequest:
        rejected = self._reviewed(actor, request, RequestStatus.REJECTED, notes)
        stored = self.repository.save(rejected, expected_version=request.version)
        logger.info(
            "Action request rejected",
            extra={"request_id": request.id, "reviewed_by": actor.user_id},
        )
        return stored

    def _approve(self, actor: Actor, request: ActionRequest, notes: str) -> ActionRequest:
        at = utcnow()
        customer = self.customers.fetch(request.customer_id)
        vc_item = self.inventory.find_by_vc_number(request.vc_number)
        note = f"Action request {request.id} approved"

        if request.action_type == ActionType.PLAN_CHANGE:
            # Re-checked here: the package may have been retired since submission.
            package = self.packages.require_offered(request.requested_plan)
            updated_customer = with_connection_plan(customer, request.vc_number, package)
            updated_item = None
            if vc_item is not None:
                updated_item = vc_item.model_copy(
                    update={
                        "package_id": package.id,
                        "package_name": package.name,
                        "package_amount": package.price,
                    }
                )
        else:
            status = TARGET_STATUS[request.action_type]
            updated_customer = with_connection_status(customer, request.vc_number, status, at)
            updated_item = None
            if vc_item is not None:
                updated_item = with_status(vc_item, VCStatus(status.value), actor.name, note, at)

        approved = self._reviewed(actor, request, RequestStatus.APPROVED, notes)

        writer = TransactionWriter()
        writer.save(self.customers.repository, updated_customer, customer.version)
        if updated_item is not None:
            writer.save(self.inventory.repository, updated_item, vc_item.version)
        stored = writer.save(
            self.repository,
            approved,
            request.version,
            require={"status": RequestStatus.PENDING.value},
        )
        writer.commit()

        logger.info(
            "Action request approved",
            extra={
                "request_id": request.id,
                "action_type": request.action_type.value,
                "customer_id": customer.id,
                "vc_number": request.vc_number,
                "inventory_updated": updated_item is not None,
                "reviewed_by": actor.user_id,
            },
        )
        return stored

    def get_request(self, actor: Optional[Actor], request_id: str) -> ActionRequest:
        require_authenticated(actor, "view action request")
        request = self.fetch(request_id)
        require_request_access(actor, request.employee_id, "view action request")
        return request

    def list_requests(
        self,
        actor: Optional[Actor],
        status: Optional[RequestStatus] = None,
        search: Optional[str] = None,
    ) -> List[ActionRequest]:
        """Newest first; employees only see requests they raised."""
        actor = require_authenticated(actor, "list action requests")
        if actor.is_admin:
            items = self.repository.scan()
        else:
            items = self.repository.query_index(EMPLOYEE_INDEX, "employee_id", actor.user_id)
        requests = [ActionRequest.model_validate(item) for item in items]

        if status is not None:
            requests = [r for r in requests if r.status == status]
        needle = (search or "").strip().lower()
        if needle:
            requests = [
                r
                for r in requests
                if needle in r.customer_name.lower()
                or needle in r.employee_name.lower()
                or needle in r.reason.lower()
            ]
        return sorted(requests, key=lambda r: r.request_date, reverse=True)

    def summarize_requests(self, actor: Optional[Actor]) -> RequestSummary:
        summary = RequestSummary()
        for request in self.list_requests(actor):
            field = request.status.value
            setattr(summary, field, getattr(summary, field) + 1)
        return summary
