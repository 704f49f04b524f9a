"""
Customer handlers.

Routes:
    GET    /customers                               (?search=)
    POST   /customers
    GET    /customers/{id}
    PUT    /customers/{id}
    DELETE /customers/{id}
    POST   /customers/{id}/connections
    DELETE /customers/{id}/connections/{connection_id}
"""

from __future__ import annotations

from typing import Optional

from models.customer import ConnectionInput, CustomerInput
from utils.http import (
    HandlerResult,
    actor_from_event,
    api_handler,
    expected_version,
    parse_body,
    path_param,
    query_param,
)
from utils.validators import parse_payload


# Lazy-loaded so importing the module never touches DynamoDB
_customer_service: Optional["CustomerService"] = None


def _get_customer_service():
    """Lazy-load CustomerService."""
    global _customer_service
    if _customer_service is None:
        from services.customer_service import CustomerService
        _customer_service = CustomerService.from_environment()
    return _customer_service


@api_handler
def list_handler(event, context):
    actor = actor_from_event(event)
    term = query_param(event, "search")
    service = _get_customer_service()
    customers = service.search_customers(actor, term) if term else service.list_customers(actor)
    return HandlerResult("Customers retrieved", customers)


@api_handler
def create_handler(event, context):
    payload = parse_payload(CustomerInput, parse_body(event))
    customer = _get_customer_service().create_customer(actor_from_event(event), payload)
    return HandlerResult("Customer created", customer, status_code=201)


@api_handler
def get_handler(event, context):
    customer = _get_customer_service().get_customer(actor_from_event(event), path_param(event, "id"))
    return HandlerResult("Customer retrieved", customer)


@api_handler
def update_handler(event, context):
    payload = parse_payload(CustomerInput, parse_body(event))
    customer = _get_customer_service().update_customer(
        actor_from_event(event),
        path_param(event, "id"),
        payload,
        expected_version=expected_version(event),
    )
    return HandlerResult("Customer updated", customer)


@api_handler
def delete_handler(event, context):
    _get_customer_service().delete_customer(
        actor_from_event(event), path_param(event, "id"), expected_version=expected_version(event)
    )
    return HandlerResult("Customer deleted")


@api_handler
def add_connection_handler(event, context):
    payload = parse_payload(ConnectionInput, parse_body(event))
    customer = _get_customer_service().add_connection(
        actor_from_event(event),
        path_param(event, "id"),
        payload,
        expected_version=expected_version(event),
    )
    return HandlerResult("Connection added", customer, status_code=201)


@api_handler
def remove_connection_handler(event, context):
    customer = _get_customer_service().remove_connection(
        actor_from_event(event),
        path_param(event, "id"),
        path_param(event, "connection_id"),
        expected_version=expected_version(event),
    )
    return HandlerResult("Connection removed", customer)
