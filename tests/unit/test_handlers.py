"""
Handler tests with mocked services.

These tests validate event parsing and response formatting without
connecting to AWS.

Run with: pytest tests/unit/test_handlers.py -v
"""

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Add src to path to simulate Lambda environment
SRC_PATH = Path(__file__).parent.parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from handlers import action_requests, areas, customers, packages, payments, vc_inventory  # noqa: E402
from models.action_request import ActionRequest, Decision, RequestStatus, RequestSummary  # noqa: E402
from models.customer import Customer  # noqa: E402
from models.area import Area  # noqa: E402
from models.package import Package  # noqa: E402
from models.payment import Payment, PaymentSummary  # noqa: E402
from models.vc_inventory import BulkCreateResult, BulkFailure, VCInventoryItem  # noqa: E402
from utils.error_handling import ConflictError, InvalidStateError, PermissionDeniedError  # noqa: E402

CLAIMS = {"sub": "emp-1", "name": "Ravi", "custom:role": "employee", "custom:areas": "North"}


def make_event(body=None, path_params=None, query=None, headers=None, claims=CLAIMS):
    return {
        "requestContext": {"requestId": "req-1", "authorizer": {"jwt": {"claims": claims}}},
        "body": json.dumps(body) if body is not None else None,
        "pathParameters": path_params,
        "queryStringParameters": query,
        "headers": headers or {},
    }


def body_of(resp):
    return json.loads(resp["body"])


def sample_customer(**overrides):
    fields = {
        "id": "c1",
        "name": "Kiran Rao",
        "phone": "9876543210",
        "address": "12 MG Road",
        "collector_name": "North",
        "vc_number": "VC-1",
    }
    fields.update(overrides)
    return Customer(**fields)


class TestCustomerHandlers:
    """Customer routes."""

    def test_create_customer(self):
        service = MagicMock()
        service.create_customer.return_value = sample_customer()
        with patch.object(customers, "_get_customer_service", return_value=service):
            resp = customers.create_handler(
                make_event(
                    body={
                        "name": "Kiran Rao",
                        "phone": "9876543210",
                        "address": "12 MG Road",
                        "collector_name": "North",
                        "vc_number": "VC-1",
                    }
                ),
                None,
            )

        assert resp["statusCode"] == 201
        body = body_of(resp)
        assert body["data"]["id"] == "c1"
        assert body["correlation_id"] == "req-1"
        actor, payload = service.create_customer.call_args.args
        assert actor.user_id == "emp-1"
        assert payload.vc_number == "VC-1"

    def test_invalid_payload_returns_422(self):
        service = MagicMock()
        with patch.object(customers, "_get_customer_service", return_value=service):
            resp = customers.create_handler(make_event(body={"name": ""}), None)

        assert resp["statusCode"] == 422
        assert body_of(resp)["errors"]
        service.create_customer.assert_not_called()

    def test_list_with_search(self):
        service = MagicMock()
        service.search_customers.return_value = [sample_customer()]
        with patch.object(customers, "_get_customer_service", return_value=service):
            resp = customers.list_handler(make_event(query={"search": "kiran"}), None)

        assert resp["statusCode"] == 200
        assert len(body_of(resp)["data"]) == 1
        service.list_customers.assert_not_called()

    def test_update_passes_if_match_version(self):
        service = MagicMock()
        service.update_customer.return_value = sample_customer(version=4)
        with patch.object(customers, "_get_customer_service", return_value=service):
            customers.update_handler(
                make_event(
                    body={
                        "name": "Kiran Rao",
                        "phone": "1",
                        "address": "x",
                        "collector_name": "North",
                        "vc_number": "VC-1",
                    },
                    path_params={"id": "c1"},
                    headers={"If-Match": "3"},
                ),
                None,
            )

        assert service.update_customer.call_args.kwargs["expected_version"] == 3

    def test_conflict_maps_to_409_with_retry(self):
        service = MagicMock()
        service.update_customer.side_effect = ConflictError()
        with patch.object(customers, "_get_customer_service", return_value=service):
            resp = customers.update_handler(
                make_event(
                    body={
                        "name": "Kiran Rao",
                        "phone": "1",
                        "address": "x",
                        "collector_name": "North",
                        "vc_number": "VC-1",
                    },
                    path_params={"id": "c1"},
                ),
                None,
            )

        assert resp["statusCode"] == 409
        assert body_of(resp)["retry"] is True

    def test_delete_permission_error(self):
        service = MagicMock()
        service.delete_customer.side_effect = PermissionDeniedError(
            "Administrator privileges required for this operation", code="ADMIN_REQUIRED"
        )
        with patch.object(customers, "_get_customer_service", return_value=service):
            resp = customers.delete_handler(make_event(path_params={"id": "c1"}), None)

        assert resp["statusCode"] == 403
        assert body_of(resp)["code"] == "ADMIN_REQUIRED"

    def test_missing_path_parameter(self):
        with patch.object(customers, "_get_customer_service", return_value=MagicMock()):
            resp = customers.get_handler(make_event(), None)
        assert resp["statusCode"] == 422


class TestVCInventoryHandlers:
    """VC inventory routes."""

    def test_lookup_by_vc_number(self):
        service = MagicMock()
        service.find_by_vc_number.return_value = VCInventoryItem(vc_number="VC-1")
        with patch.object(vc_inventory, "_get_vc_service", return_value=service):
            resp = vc_inventory.list_handler(make_event(query={"vc_number": "VC-1"}), None)

        assert resp["statusCode"] == 200
        assert body_of(resp)["data"]["vc_number"] == "VC-1"

    def test_lookup_by_unknown_vc_number(self):
        service = MagicMock()
        service.find_by_vc_number.return_value = None
        with patch.object(vc_inventory, "_get_vc_service", return_value=service):
            resp = vc_inventory.list_handler(make_event(query={"vc_number": "VC-9"}), None)
        assert resp["statusCode"] == 404

    def test_customer_vcs_active_only(self):
        service = MagicMock()
        service.list_vcs_for_customer.return_value = []
        with patch.object(vc_inventory, "_get_vc_service", return_value=service):
            vc_inventory.list_handler(
                make_event(query={"customer_id": "c1", "active_only": "true"}), None
            )
        assert service.list_vcs_for_customer.call_args.kwargs["active_only"] is True

    def test_bulk_create(self):
        service = MagicMock()
        service.bulk_create.return_value = BulkCreateResult(
            success=["VC-2"], failed=[BulkFailure(vc_number="VC-1", error="exists")]
        )
        with patch.object(vc_inventory, "_get_vc_service", return_value=service):
            resp = vc_inventory.bulk_create_handler(
                make_event(body={"vc_numbers": ["VC-1", "VC-2"]}), None
            )

        assert resp["statusCode"] == 201
        body = body_of(resp)
        assert body["message"] == "1 VCs created, 1 failed"
        assert body["data"]["failed"][0]["vc_number"] == "VC-1"

    def test_change_status_rejects_unknown_status(self):
        service = MagicMock()
        with patch.object(vc_inventory, "_get_vc_service", return_value=service):
            resp = vc_inventory.change_status_handler(
                make_event(body={"status": "broken"}, path_params={"id": "v1"}), None
            )
        assert resp["statusCode"] == 422
        service.change_status.assert_not_called()


class TestActionRequestHandlers:
    """Action request routes."""

    def _request(self, **overrides):
        fields = {
            "id": "r1",
            "customer_id": "c1",
            "customer_name": "Kiran Rao",
            "vc_number": "VC-1",
            "employee_id": "emp-1",
            "employee_name": "Ravi",
            "action_type": "deactivation",
            "reason": "Customer is moving away",
        }
        fields.update(overrides)
        return ActionRequest(**fields)

    def test_submit(self):
        service = MagicMock()
        service.submit.return_value = self._request()
        with patch.object(action_requests, "_get_request_service", return_value=service):
            resp = action_requests.submit_handler(
                make_event(
                    body={
                        "customer_id": "c1",
                        "vc_number": "VC-1",
                        "action_type": "deactivation",
                        "reason": "Customer is moving away",
                    }
                ),
                None,
            )

        assert resp["statusCode"] == 201
        assert body_of(resp)["data"]["status"] == "pending"

    def test_short_reason_rejected(self):
        service = MagicMock()
        with patch.object(action_requests, "_get_request_service", return_value=service):
            resp = action_requests.submit_handler(
                make_event(
                    body={
                        "customer_id": "c1",
                        "vc_number": "VC-1",
                        "action_type": "activation",
                        "reason": "short",
                    }
                ),
                None,
            )
        assert resp["statusCode"] == 422

    def test_resolve_message_reflects_outcome(self):
        service = MagicMock()
        service.resolve.return_value = self._request(status=RequestStatus.APPROVED)
        with patch.object(action_requests, "_get_request_service", return_value=service):
            resp = action_requests.resolve_handler(
                make_event(
                    body={"decision": "approve", "admin_notes": "Approved by admin"},
                    path_params={"id": "r1"},
                    headers={"if-match": "1"},
                ),
                None,
            )

        assert body_of(resp)["message"] == "Action request approved"
        _, request_id, payload = service.resolve.call_args.args
        assert request_id == "r1"
        assert payload.decision == Decision.APPROVE
        assert service.resolve.call_args.kwargs["expected_version"] == 1

    def test_list_status_filter(self):
        service = MagicMock()
        service.list_requests.return_value = []
        with patch.object(action_requests, "_get_request_service", return_value=service):
            action_requests.list_handler(make_event(query={"status": "pending"}), None)
            resp = action_requests.list_handler(make_event(query={"status": "bogus"}), None)

        assert service.list_requests.call_args.kwargs["status"] == RequestStatus.PENDING
        assert resp["statusCode"] == 422

    def test_summary(self):
        service = MagicMock()
        service.summarize_requests.return_value = RequestSummary(pending=2, approved=1)
        with patch.object(action_requests, "_get_request_service", return_value=service):
            resp = action_requests.summary_handler(make_event(), None)
        assert body_of(resp)["data"] == {"pending": 2, "approved": 1, "rejected": 0}


class TestPackageHandlers:
    def test_list_active_only(self):
        service = MagicMock()
        service.list_packages.return_value = [Package(name="Basic", price=199)]
        with patch.object(packages, "_get_package_service", return_value=service):
            resp = packages.list_handler(make_event(query={"active_only": "true"}), None)

        assert body_of(resp)["data"][0]["name"] == "Basic"
        assert service.list_packages.call_args.kwargs["active_only"] is True

    def test_unexpected_error_is_500(self):
        service = MagicMock()
        service.get_package.side_effect = RuntimeError("boom")
        with patch.object(packages, "_get_package_service", return_value=service):
            resp = packages.get_handler(make_event(path_params={"id": "p1"}), None)
        assert resp["statusCode"] == 500

    def test_update_passes_partial_payload_and_version(self):
        service = MagicMock()
        service.update_package.return_value = Package(name="Basic", price=199, is_active=False)
        event = make_event(body={"is_active": False}, path_params={"id": "p1"}, headers={"If-Match": "4"})
        with patch.object(packages, "_get_package_service", return_value=service):
            resp = packages.update_handler(event, None)

        assert resp["statusCode"] == 200
        args = service.update_package.call_args
        assert args.args[2].model_dump(exclude_unset=True) == {"is_active": False}
        assert args.kwargs["expected_version"] == 4

    def test_delete_in_use_is_409(self):
        service = MagicMock()
        service.delete_package.side_effect = InvalidStateError("Package in use")
        with patch.object(packages, "_get_package_service", return_value=service):
            resp = packages.delete_handler(make_event(path_params={"id": "p1"}), None)
        assert resp["statusCode"] == 409
        assert body_of(resp)["message"] == "Package in use"


class TestPaymentHandlers:
    def sample_payment(self):
        return Payment(
            receipt_number="RCP-1-ABCD",
            customer_id="c1",
            customer_name="Kiran Rao",
            customer_area="North",
            amount_paid=250,
            collected_by="Ravi",
            collected_by_id="emp-1",
        )

    def test_collect(self):
        service = MagicMock()
        service.collect_payment.return_value = self.sample_payment()
        event = make_event(body={"customer_id": "c1", "amount_paid": 250, "payment_method": "online"})
        with patch.object(payments, "_get_payment_service", return_value=service):
            resp = payments.collect_handler(event, None)

        assert resp["statusCode"] == 201
        assert body_of(resp)["message"] == "Payment collected: RCP-1-ABCD"
        payload = service.collect_payment.call_args.args[1]
        assert payload.payment_method.value == "online"

    def test_collect_rejects_negative_amount(self):
        event = make_event(body={"customer_id": "c1", "amount_paid": -5})
        with patch.object(payments, "_get_payment_service", return_value=MagicMock()):
            resp = payments.collect_handler(event, None)
        assert resp["statusCode"] == 422

    def test_list_parses_date_range(self):
        service = MagicMock()
        service.list_payments.return_value = []
        event = make_event(query={"customer_id": "c1", "from": "2024-01-01", "to": "2024-01-31T23:59:59+05:30"})
        with patch.object(payments, "_get_payment_service", return_value=service):
            payments.list_handler(event, None)

        kwargs = service.list_payments.call_args.kwargs
        assert kwargs["customer_id"] == "c1"
        assert kwargs["start"].tzinfo is not None
        assert kwargs["end"].utcoffset().total_seconds() == 19800

    def test_bad_date_is_422(self):
        with patch.object(payments, "_get_payment_service", return_value=MagicMock()):
            resp = payments.summary_handler(make_event(query={"from": "last week"}), None)
        assert resp["statusCode"] == 422

    def test_summary(self):
        service = MagicMock()
        service.summarize.return_value = PaymentSummary(total_payments=2, total_amount=300)
        with patch.object(payments, "_get_payment_service", return_value=service):
            resp = payments.summary_handler(make_event(), None)
        assert body_of(resp)["data"]["total_amount"] == 300


class TestAreaHandlers:
    def test_delete_defaults_to_deactivation(self):
        service = MagicMock()
        service.delete_area.return_value = Area(name="North", is_active=False)
        with patch.object(areas, "_get_area_service", return_value=service):
            resp = areas.delete_handler(make_event(path_params={"id": "a1"}), None)

        assert body_of(resp)["message"] == "Area deactivated"
        assert service.delete_area.call_args.kwargs["permanent"] is False

    def test_permanent_delete(self):
        service = MagicMock()
        service.delete_area.return_value = None
        event = make_event(path_params={"id": "a1"}, query={"permanent": "true"})
        with patch.object(areas, "_get_area_service", return_value=service):
            resp = areas.delete_handler(event, None)

        assert body_of(resp)["message"] == "Area deleted"
        assert body_of(resp)["data"] is None

    def test_blank_name_rejected(self):
        with patch.object(areas, "_get_area_service", return_value=MagicMock()):
            resp = areas.create_handler(make_event(body={"name": "  "}), None)
        assert resp["statusCode"] == 422


class TestHandlersWithMoto:
    """End-to-end through the router with a mocked DynamoDB."""

    def test_submit_and_summarize(self, dynamodb, monkeypatch):
        from handlers import main
        from services.action_request_service import ActionRequestService
        from services.customer_service import CustomerService

        monkeypatch.setattr(customers, "_customer_service", CustomerService())
        monkeypatch.setattr(action_requests, "_request_service", ActionRequestService())

        def call(method, path, body=None):
            event = make_event(body=body)
            event["requestContext"]["http"] = {"method": method, "path": path}
            return main.lambda_handler(event, None)

        created = call(
            "POST",
            "/customers",
            {
                "name": "Kiran Rao",
                "phone": "9876543210",
                "address": "12 MG Road",
                "collector_name": "North",
                "vc_number": "VC-1",
            },
        )
        assert created["statusCode"] == 201
        customer_id = body_of(created)["data"]["id"]

        submitted = call(
            "POST",
            "/requests",
            {
                "customer_id": customer_id,
                "vc_number": "VC-1",
                "action_type": "deactivation",
                "reason": "Customer is moving away",
            },
        )
        assert submitted["statusCode"] == 201

        summary = call("GET", "/requests/summary")
        assert body_of(summary)["data"]["pending"] == 1

    def test_approval_and_payment_through_router(self, dynamodb, monkeypatch):
        from handlers import main
        from services.action_request_service import ActionRequestService
        from services.customer_service import CustomerService
        from services.package_service import PackageService
        from services.payment_service import PaymentService

        admin_claims = {"sub": "admin-1", "name": "Asha", "custom:role": "admin"}
        monkeypatch.setattr(customers, "_customer_service", CustomerService())
        monkeypatch.setattr(action_requests, "_request_service", ActionRequestService())
        monkeypatch.setattr(packages, "_package_service", PackageService())
        monkeypatch.setattr(payments, "_payment_service", PaymentService())

        def call(method, path, body=None, claims=CLAIMS):
            event = make_event(body=body, claims=claims)
            event["requestContext"]["http"] = {"method": method, "path": path}
            return main.lambda_handler(event, None)

        customer_id = body_of(
            call(
                "POST",
                "/customers",
                {
                    "name": "Kiran Rao",
                    "phone": "9876543210",
                    "address": "12 MG Road",
                    "collector_name": "North",
                    "vc_number": "VC-1",
                    "current_package": "Basic",
                    "current_outstanding": 300,
                },
            )
        )["data"]["id"]
        assert call("POST", "/packages", {"name": "Premium-100", "price": 499}, admin_claims)["statusCode"] == 201

        request_id = body_of(
            call(
                "POST",
                "/requests",
                {
                    "customer_id": customer_id,
                    "vc_number": "VC-1",
                    "action_type": "plan_change",
                    "requested_plan": "Premium-100",
                    "reason": "Customer wants more channels",
                },
            )
        )["data"]["id"]

        resolved = call(
            "POST",
            f"/requests/{request_id}/resolve",
            {"decision": "approve", "admin_notes": "Approved by admin"},
            admin_claims,
        )
        assert resolved["statusCode"] == 200
        assert body_of(resolved)["data"]["status"] == "approved"

        collected = call("POST", "/payments", {"customer_id": customer_id, "amount_paid": 200})
        assert collected["statusCode"] == 201
        assert body_of(collected)["data"]["outstanding_after"] == 100

        customer = body_of(call("GET", f"/customers/{customer_id}"))["data"]
        assert customer["current_package"] == "Premium-100"
        assert customer["package_amount"] == 499
        assert customer["current_outstanding"] == 100
