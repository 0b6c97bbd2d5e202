"""
Cacheable resources and the writes that invalidate them.

A read names a resource plus a params dict; this module turns that
into an ApiRequest and turns the response into a model. A write names
a resource family plus an operation; INVALIDATION_RULES says which
cached resources it makes out of date.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional

from pydantic import BaseModel

from expense_client.config import get_settings
from expense_client.models.budget import Budget
from expense_client.models.expense import Expense, ExpensePage, ExpenseSummary
from expense_client.models.request import ApiRequest

EXPENSES = "expenses"
EXPENSES_SUMMARY = "expenses-summary"
EXPENSE = "expense"
BUDGETS = "budgets"

CREATE = "create"
UPDATE = "update"
DELETE = "delete"

WRITE_METHODS = {
    CREATE: "POST",
    UPDATE: "PATCH",
    DELETE: "DELETE",
}


@dataclass(frozen=True)
class ResourceSpec:
    """How to fetch and parse one cacheable resource."""
    path: str
    parse: Callable[[Any], Any]
    # Maps (cache params, page size) to query params; None sends no query string
    to_query: Optional[Callable[[dict, int], dict]] = None
    # Path of a single item, for writes against the family
    item_path: Optional[str] = None


def _listing_query(params: dict, page_size: int) -> dict:
    query = {}
    page = params.get("page")
    if page is not None:
        page = int(page)
        if page < 1:
            raise ValueError(f"page must be 1 or more, got {page}")
        query["offset"] = (page - 1) * page_size
        query["limit"] = page_size
    for field in ("from_date", "to_date", "category", "min_amount", "max_amount"):
        if params.get(field):
            query[field] = params[field]
    return query


def _summary_query(params: dict, page_size: int) -> dict:
    return {
        field: params[field]
        for field in ("month", "from_date", "to_date")
        if params.get(field)
    }


def _parse_page(data: Any) -> ExpensePage:
    # Unpaginated backends return a bare list
    if isinstance(data, list):
        return ExpensePage(count=len(data), results=data)
    return ExpensePage.model_validate(data)


def _parse_budgets(data: Any) -> list[Budget]:
    if isinstance(data, dict):
        data = data.get("results", [])
    return [Budget.model_validate(item) for item in data or []]


RESOURCES: dict[str, ResourceSpec] = {
    EXPENSES: ResourceSpec(
        path="/expenses/",
        parse=_parse_page,
        to_query=_listing_query,
        item_path="/expenses/{id}/",
    ),
    EXPENSES_SUMMARY: ResourceSpec(
        path="/expenses/summary/",
        parse=ExpenseSummary.model_validate,
        to_query=_summary_query,
    ),
    EXPENSE: ResourceSpec(
        path="/expenses/{id}/",
        parse=Expense.model_validate,
    ),
    BUDGETS: ResourceSpec(
        path="/budgets/",
        parse=_parse_budgets,
        item_path="/budgets/{id}/",
    ),
}

# (family, operation) -> cached resources to mark absent after success
INVALIDATION_RULES: dict[tuple[str, str], tuple[str, ...]] = {
    (EXPENSES, CREATE): (EXPENSES, EXPENSES_SUMMARY),
    (EXPENSES, UPDATE): (EXPENSES, EXPENSES_SUMMARY, EXPENSE),
    (EXPENSES, DELETE): (EXPENSES, EXPENSES_SUMMARY, EXPENSE),
    (BUDGETS, CREATE): (BUDGETS,),
    (BUDGETS, UPDATE): (BUDGETS,),
    (BUDGETS, DELETE): (BUDGETS,),
}


def get_resource(name: str) -> ResourceSpec:
    try:
        return RESOURCES[name]
    except KeyError:
        raise ValueError(f"Unknown resource: {name}")


def read_request(name: str, params: dict, page_size: Optional[int] = None) -> ApiRequest:
    """Build the GET for a cached read."""
    if page_size is None:
        page_size = get_settings().page_size
    spec = get_resource(name)
    path = spec.path
    if "{id}" in path:
        if not params.get("id"):
            raise ValueError(f"Resource '{name}' needs an 'id' param")
        path = path.format(id=params["id"])
    query = spec.to_query(params, page_size) if spec.to_query else None
    return ApiRequest(method="GET", path=path, params=query or None)


def _json_payload(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", exclude_none=True)
    if isinstance(payload, dict):
        return {k: str(v) if isinstance(v, Decimal) else v for k, v in payload.items()}
    return payload


def write_request(
    name: str,
    operation: str,
    payload: Any = None,
    resource_id: Optional[str] = None,
) -> ApiRequest:
    """Build the POST/PATCH/DELETE for a write against a resource family."""
    if (name, operation) not in INVALIDATION_RULES:
        raise ValueError(f"Unsupported write: {operation} {name}")
    spec = get_resource(name)
    
    if operation == CREATE:
        path = spec.path
    else:
        if not resource_id:
            raise ValueError(f"{operation} {name} needs a resource_id")
        path = spec.item_path.format(id=resource_id)
    
    body = _json_payload(payload) if operation != DELETE else None
    return ApiRequest(method=WRITE_METHODS[operation], path=path, json_body=body)


def invalidated_by(name: str, operation: str) -> tuple[str, ...]:
    return INVALIDATION_RULES[(name, operation)]
