"""
VC inventory tracking.

Status and ownership history are append-only: ``change_status`` always adds a
history entry (repeats allowed), ``reassign`` closes whatever ownership entry
is still open before opening a new one, so at most one entry lacks an
``end_date``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from models.actor import Actor
from models.customer import Customer, utcnow
from models.vc_inventory import (
    BulkCreateResult,
    BulkFailure,
    OwnershipHistoryEntry,
    StatusHistoryEntry,
    VCCreateInput,
    VCInventoryItem,
    VCStatus,
)
from repositories.dynamodb_repo import DynamoDbRepository
from services.customer_service import COLLECTOR_INDEX
from utils.config import AppConfig
from utils.error_handling import AppError, ConflictError, NotFoundError, ValidationError
from utils.logging_config import get_logger
from utils.permissions import require_admin, require_area_access, require_authenticated

logger = get_logger(__name__)

VC_NUMBER_INDEX = "vc_number-index"
CUSTOMER_INDEX = "customer_id-index"


def with_status(
    item: VCInventoryItem,
    status: VCStatus,
    changed_by: str,
    reason: Optional[str],
    at: datetime,
) -> VCInventoryItem:
    entry = StatusHistoryEntry(status=status, changed_at=at, changed_by=changed_by, reason=reason)
    return item.model_copy(
        update={"status": status, "status_history": [*item.status_history, entry]}
    )


def with_owner(
    item: VCInventoryItem,
    customer_id: str,
    customer_name: str,
    assigned_by: str,
    at: datetime,
) -> VCInventoryItem:
    history = [
        entry.model_copy(update={"end_date": at}) if entry.is_open else entry
        for entry in item.ownership_history
    ]
    history.append(
        OwnershipHistoryEntry(
            customer_id=customer_id,
            customer_name=customer_name,
            start_date=at,
            assigned_by=assigned_by,
        )
    )
    return item.model_copy(
        update={
            "customer_id": customer_id,
            "customer_name": customer_name,
            "ownership_history": history,
        }
    )


class VCInventoryService:
    """CRUD and history bookkeeping for VC inventory items."""

    def __init__(
        self,
        repository: Optional[DynamoDbRepository] = None,
        customers: Optional[DynamoDbRepository] = None,
    ):
        config = AppConfig.from_environment()
        self.repository = repository or DynamoDbRepository(config.vc_inventory_table)
        self.customers = customers or DynamoDbRepository(config.customers_table)

    @classmethod
    def from_environment(cls) -> "VCInventoryService":
        config = AppConfig.from_environment()
        options = dict(
            attempts=config.bootstrap_attempts, backoff_base=config.bootstrap_backoff_seconds
        )
        return cls(
            DynamoDbRepository.connect(config.vc_inventory_table, **options),
            DynamoDbRepository.connect(config.customers_table, **options),
        )

    def fetch(self, vc_id: str) -> VCInventoryItem:
        item = self.repository.get_model(VCInventoryItem, vc_id)
        if item is None:
            raise NotFoundError(f"VC item {vc_id} not found")
        return item

    def find_by_vc_number(self, vc_number: str) -> Optional[VCInventoryItem]:
        items = self.repository.query_index(VC_NUMBER_INDEX, "vc_number", vc_number)
        return VCInventoryItem.model_validate(items[0]) if items else None

    def _require_owner_access(self, actor: Actor, customer_id: Optional[str], operation: str) -> None:
        """Employees only reach VCs owned by customers of their areas."""
        if actor.is_admin:
            return
        customer = self.customers.get_model(Customer, customer_id) if customer_id else None
        require_area_access(actor, customer.collector_name if customer else None, operation)

    def get_vc(self, actor: Optional[Actor], vc_id: str) -> VCInventoryItem:
        actor = require_authenticated(actor, "view VC")
        item = self.fetch(vc_id)
        self._require_owner_access(actor, item.customer_id, "view VC")
        return item

    def list_vcs(self, actor: Optional[Actor]) -> List[VCInventoryItem]:
        """Admins see the whole inventory, employees the VCs of their areas."""
        actor = require_authenticated(actor, "list VCs")
        if not actor.is_admin:
            return self.list_vcs_for_areas(actor, actor.areas)
        return self._sorted(self.repository.scan())

    def list_vcs_for_customer(
        self, actor: Optional[Actor], customer_id: str, active_only: bool = False
    ) -> List[VCInventoryItem]:
        actor = require_authenticated(actor, "list customer VCs")
        self._require_owner_access(actor, customer_id, "list customer VCs")
        items = self._sorted(self.repository.query_index(CUSTOMER_INDEX, "customer_id", customer_id))
        if active_only:
            items = [item for item in items if item.status == VCStatus.ACTIVE]
        return items

    def list_active_vcs_for_customer(
        self, actor: Optional[Actor], customer_id: str
    ) -> List[VCInventoryItem]:
        return self.list_vcs_for_customer(actor, customer_id, active_only=True)

    def list_vcs_for_areas(self, actor: Optional[Actor], areas: Iterable[str]) -> List[VCInventoryItem]:
        """VCs owned by customers collected in ``areas``."""
        actor = require_authenticated(actor, "list VCs by area")
        areas = [area for area in areas if actor.can_access_area(area)]

        customer_ids = set()
        for area in areas:
            for item in self.customers.query_index(COLLECTOR_INDEX, "collector_name", area):
                customer_ids.add(Customer.model_validate(item).id)

        items: List[dict] = []
        for customer_id in sorted(customer_ids):
            items.extend(self.repository.query_index(CUSTOMER_INDEX, "customer_id", customer_id))
        return self._sorted(items)

    def create_vc(self, actor: Optional[Actor], payload: VCCreateInput) -> VCInventoryItem:
        actor = require_admin(actor, "create VC")
        if self.find_by_vc_number(payload.vc_number) is not None:
            raise ValidationError(f"VC number {payload.vc_number} already exists")

        at = utcnow()
        item = VCInventoryItem(
            vc_number=payload.vc_number,
            package_id=payload.package_id,
            package_name=payload.package_name,
            package_amount=payload.package_amount,
        )
        item = with_status(item, payload.status, actor.name, payload.reason or "Created", at)
        if payload.customer_id:
            item = with_owner(
                item, payload.customer_id, payload.customer_name or "", actor.name, at
            )

        stored = self.repository.save(item)
        logger.info("VC item created", extra={"vc_id": stored.id, "vc_number": stored.vc_number})
        return stored

    def bulk_create(
        self,
        actor: Optional[Actor],
        vc_numbers: List[str],
        package_id: Optional[str] = None,
        package_name: Optional[str] = None,
    ) -> BulkCreateResult:
        """Create unassigned VCs, collecting a per-number failure report."""
        require_admin(actor, "bulk create VCs")
        result = BulkCreateResult()
        for vc_number in vc_numbers:
            try:
                payload = VCCreateInput(
                    vc_number=vc_number,
                    package_id=package_id,
                    package_name=package_name,
                    status=VCStatus.AVAILABLE,
                    reason="Bulk creation",
                )
                self.create_vc(actor, payload)
                result.success.append(payload.vc_number)
            except (AppError, ValueError) as exc:
                result.failed.append(BulkFailure(vc_number=vc_number, error=str(exc)))

        logger.info(
            "Bulk VC creation finished",
            extra={"created_count": len(result.success), "failed_count": len(result.failed)},
        )
        return result

    def _load_for_write(self, vc_id: str, expected_version: Optional[int]) -> VCInventoryItem:
        item = self.fetch(vc_id)
        if expected_version is not None and expected_version != item.version:
            raise ConflictError()
        return item

    def change_status(
        self,
        actor: Optional[Actor],
        vc_id: str,
        new_status: VCStatus,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> VCInventoryItem:
        actor = require_admin(actor, "change VC status")
        item = self._load_for_write(vc_id, expected_version)
        updated = with_status(item, new_status, actor.name, reason, utcnow())
        stored = self.repository.save(updated, expected_version=item.version)
        logger.info(
            "VC status changed",
            extra={"vc_number": item.vc_number, "from": item.status.value, "to": new_status.value},
        )
        return stored

    def reassign(
        self,
        actor: Optional[Actor],
        vc_id: str,
        customer_id: str,
        customer_name: str,
        expected_version: Optional[int] = None,
    ) -> VCInventoryItem:
        actor = require_admin(actor, "reassign VC")
        item = self._load_for_write(vc_id, expected_version)
        updated = with_owner(item, customer_id, customer_name, actor.name, utcnow())
        stored = self.repository.save(updated, expected_version=item.version)
        logger.info(
            "VC reassigned",
            extra={"vc_number": item.vc_number, "customer_id": customer_id},
        )
        return stored

    def delete_vc(
        self, actor: Optional[Actor], vc_id: str, expected_version: Optional[int] = None
    ) -> None:
        require_admin(actor, "delete VC")
        item = self.fetch(vc_id)
        self.repository.delete(vc_id, expected_version=expected_version or item.version)
        logger.info("VC item deleted", extra={"vc_id": vc_id, "vc_number": item.vc_number})

    @staticmethod
    def _sorted(items: List[dict]) -> List[VCInventoryItem]:
        return sorted(
            (VCInventoryItem.model_validate(item) for item in items),
            key=lambda item: item.vc_number,
        )
