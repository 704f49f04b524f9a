"""
Action request workflow tests against a moto-backed DynamoDB.

Covers the pending -> approved/rejected state machine and the atomic
approval side effects on customers and VC inventory.

Run with: pytest tests/unit/test_action_request_service.py -v
"""

import pytest

from models.action_request import (
    ActionType,
    Decision,
    RequestStatus,
    ResolveActionRequest,
    SubmitActionRequest,
)
from models.customer import ConnectionInput, CustomerInput, CustomerStatus
from models.package import PackageInput, PackageUpdate
from models.vc_inventory import VCCreateInput, VCStatus
from services.action_request_service import DEFAULT_APPROVAL_NOTE, ActionRequestService
from utils.error_handling import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

REASON = "Customer requested upgrade to faster plan"


@pytest.fixture
def service(dynamodb):
    return ActionRequestService()


@pytest.fixture
def customer(service, admin):
    return service.customers.create_customer(
        admin,
        CustomerInput(
            name="Kiran Rao",
            phone="9876543210",
            address="12 MG Road",
            collector_name="North",
            connections=[
                {"vc_number": "VC-1", "plan_name": "Basic", "plan_price": 200},
                {"vc_number": "VC-2", "plan_name": "Basic", "plan_price": 200},
            ],
        ),
    )


@pytest.fixture
def vc_item(service, admin, customer):
    return service.inventory.create_vc(
        admin,
        VCCreateInput(
            vc_number="VC-1",
            customer_id=customer.id,
            customer_name=customer.name,
            package_name="Basic",
            package_amount=200,
            status=VCStatus.ACTIVE,
        ),
    )


def submit(service, actor, customer, action_type, vc_number="VC-1", requested_plan=None):
    return service.submit(
        actor,
        SubmitActionRequest(
            customer_id=customer.id,
            vc_number=vc_number,
            action_type=action_type,
            reason=REASON,
            requested_plan=requested_plan,
        ),
    )


def approve(notes=None):
    return ResolveActionRequest(decision=Decision.APPROVE, admin_notes=notes)


def reject(notes=None):
    return ResolveActionRequest(decision=Decision.REJECT, admin_notes=notes)


class TestSubmit:
    def test_snapshots_current_state(self, service, employee, customer):
        request = submit(service, employee, customer, ActionType.DEACTIVATION)
        assert request.status == RequestStatus.PENDING
        assert request.current_status == CustomerStatus.ACTIVE
        assert request.current_plan == "Basic"
        assert request.employee_id == employee.user_id
        assert request.customer_name == "Kiran Rao"

    def test_vc_must_belong_to_customer(self, service, employee, customer):
        with pytest.raises(ValidationError):
            submit(service, employee, customer, ActionType.DEACTIVATION, vc_number="VC-404")

    def test_plan_change_needs_offered_package(self, service, admin, employee, customer):
        service.packages.create_package(
            admin, PackageInput(name="Retired", price=99, is_active=False)
        )
        for plan in ("Gold-999", "Retired"):
            with pytest.raises(ValidationError, match="not offered"):
                submit(service, employee, customer, ActionType.PLAN_CHANGE, requested_plan=plan)
        assert service.list_requests(admin) == []

    def test_employee_outside_area_denied(self, service, other_employee, customer):
        with pytest.raises(PermissionDeniedError) as exc:
            submit(service, other_employee, customer, ActionType.DEACTIVATION)
        assert exc.value.code == "CUSTOMER_ACCESS_DENIED"


class TestApprove:
    def test_plan_change_approval(self, service, admin, employee, customer, vc_item):
        service.packages.create_package(admin, PackageInput(name="Premium-100", price=499))
        request = submit(
            service, employee, customer, ActionType.PLAN_CHANGE, requested_plan="Premium-100"
        )

        resolved = service.resolve(admin, request.id, approve("Approved by admin"))
        assert resolved.status == RequestStatus.APPROVED
        assert resolved.reviewed_by == admin.name
        assert resolved.review_date is not None
        assert resolved.admin_notes == "Approved by admin"

        stored = service.get_request(admin, request.id)
        assert stored.status == RequestStatus.APPROVED

        updated = service.customers.fetch(customer.id)
        assert updated.connections[0].plan_name == "Premium-100"
        assert updated.current_package == "Premium-100"
        assert updated.package_amount == 499
        assert updated.version == customer.version + 1

        item = service.inventory.fetch(vc_item.id)
        assert item.package_name == "Premium-100"
        assert item.package_amount == 499

    def test_deactivating_primary_vc(self, service, admin, employee, customer, vc_item):
        request = submit(service, employee, customer, ActionType.DEACTIVATION)
        service.resolve(admin, request.id, approve())

        updated = service.customers.fetch(customer.id)
        assert updated.status == CustomerStatus.INACTIVE
        assert updated.is_active is False
        assert updated.connections[0].status == CustomerStatus.INACTIVE
        assert updated.deactivation_date is not None

        item = service.inventory.fetch(vc_item.id)
        assert item.status == VCStatus.INACTIVE
        assert len(item.status_history) == 2
        assert item.status_history[-1].changed_by == admin.name

    def test_secondary_vc_leaves_top_level_status(self, service, admin, employee, customer):
        request = submit(service, employee, customer, ActionType.DEACTIVATION, vc_number="VC-2")
        service.resolve(admin, request.id, approve())

        updated = service.customers.fetch(customer.id)
        assert updated.status == CustomerStatus.ACTIVE
        assert updated.is_active is True
        assert updated.connections[0].status == CustomerStatus.ACTIVE
        assert updated.connections[1].status == CustomerStatus.INACTIVE

    def test_default_approval_note(self, service, admin, employee, customer):
        request = submit(service, employee, customer, ActionType.ACTIVATION)
        resolved = service.resolve(admin, request.id, approve("  "))
        assert resolved.admin_notes == DEFAULT_APPROVAL_NOTE

    def test_missing_customer_leaves_request_pending(self, service, admin, employee, customer):
        request = submit(service, employee, customer, ActionType.DEACTIVATION)
        service.customers.delete_customer(admin, customer.id)

        with pytest.raises(NotFoundError):
            service.resolve(admin, request.id, approve())
        assert service.fetch(request.id).status == RequestStatus.PENDING

    def test_package_retired_after_submission(self, service, admin, employee, customer):
        package = service.packages.create_package(admin, PackageInput(name="Gold-999", price=999))
        request = submit(
            service, employee, customer, ActionType.PLAN_CHANGE, requested_plan="Gold-999"
        )
        service.packages.update_package(admin, package.id, PackageUpdate(is_active=False))

        with pytest.raises(ValidationError, match="not active"):
            service.resolve(admin, request.id, approve())

        assert service.fetch(request.id).status == RequestStatus.PENDING
        unchanged = service.customers.fetch(customer.id)
        assert unchanged.version == customer.version
        assert unchanged.current_package == "Basic"

    def test_package_deleted_after_submission(self, service, admin, employee, customer):
        package = service.packages.create_package(admin, PackageInput(name="Gold-999", price=999))
        request = submit(
            service, employee, customer, ActionType.PLAN_CHANGE, requested_plan="Gold-999"
        )
        service.packages.delete_package(admin, package.id)

        with pytest.raises(NotFoundError):
            service.resolve(admin, request.id, approve())
        assert service.fetch(request.id).status == RequestStatus.PENDING
        assert service.customers.fetch(customer.id).current_package == "Basic"

    def test_customer_changed_concurrently(self, service, admin, employee, customer, monkeypatch):
        request = submit(service, employee, customer, ActionType.DEACTIVATION)
        stale = service.customers.fetch(customer.id)
        service.customers.add_connection(admin, customer.id, ConnectionInput(vc_number="VC-3"))
        monkeypatch.setattr(service.customers, "fetch", lambda customer_id: stale)

        with pytest.raises(ConflictError):
            service.resolve(admin, request.id, approve())
        assert service.fetch(request.id).status == RequestStatus.PENDING


class TestReject:
    def test_rejection_needs_notes(self, service, admin, employee, customer):
        request = submit(service, employee, customer, ActionType.DEACTIVATION)
        with pytest.raises(ValidationError, match="Rejection reason required"):
            service.resolve(admin, request.id, reject(""))
        assert service.fetch(request.id).status == RequestStatus.PENDING

    def test_rejection_has_no_side_effect(self, service, admin, employee, customer):
        request = submit(service, employee, customer, ActionType.DEACTIVATION)
        resolved = service.resolve(admin, request.id, reject("Dues not cleared"))
        assert resolved.status == RequestStatus.REJECTED
        assert resolved.admin_notes == "Dues not cleared"
        assert service.customers.fetch(customer.id).status == CustomerStatus.ACTIVE


class TestStateMachine:
    @pytest.mark.parametrize("first", [approve("ok"), reject("no")])
    @pytest.mark.parametrize("second", [approve("again"), reject("again")])
    def test_resolved_requests_are_terminal(self, service, admin, employee, customer, first, second):
        request = submit(service, employee, customer, ActionType.ACTIVATION)
        service.resolve(admin, request.id, first)
        with pytest.raises(InvalidStateError):
            service.resolve(admin, request.id, second)

    def test_stale_expected_version(self, service, admin, employee, customer):
        request = submit(service, employee, customer, ActionType.ACTIVATION)
        with pytest.raises(ConflictError):
            service.resolve(admin, request.id, approve(), expected_version=request.version + 5)
        assert service.fetch(request.id).status == RequestStatus.PENDING

    def test_employee_cannot_resolve(self, service, employee, customer):
        request = submit(service, employee, customer, ActionType.ACTIVATION)
        with pytest.raises(PermissionDeniedError) as exc:
            service.resolve(employee, request.id, approve())
        assert exc.value.code == "ADMIN_REQUIRED"


class TestListing:
    def test_employee_sees_own_requests(self, service, admin, employee, customer):
        mine = submit(service, employee, customer, ActionType.ACTIVATION)
        submit(service, admin, customer, ActionType.DEACTIVATION)

        assert [r.id for r in service.list_requests(employee)] == [mine.id]
        assert len(service.list_requests(admin)) == 2

    def test_other_employee_cannot_view_request(self, service, employee, customer):
        from models.actor import Actor

        request = submit(service, employee, customer, ActionType.ACTIVATION)
        stranger = Actor(user_id="emp-9", name="Stranger", assigned_areas=["North"])
        with pytest.raises(PermissionDeniedError) as exc:
            service.get_request(stranger, request.id)
        assert exc.value.code == "REQUEST_ACCESS_DENIED"

    def test_filters_and_summary(self, service, admin, employee, customer):
        first = submit(service, employee, customer, ActionType.ACTIVATION)
        submit(service, employee, customer, ActionType.DEACTIVATION)
        service.resolve(admin, first.id, reject("Not needed"))

        pending = service.list_requests(admin, status=RequestStatus.PENDING)
        assert [r.action_type for r in pending] == [ActionType.DEACTIVATION]
        assert len(service.list_requests(admin, search="kiran")) == 2
        assert service.list_requests(admin, search="nobody") == []

        summary = service.summarize_requests(admin)
        assert (summary.pending, summary.approved, summary.rejected) == (1, 0, 1)
