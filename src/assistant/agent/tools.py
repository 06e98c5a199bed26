"""
Customer tools exposed to the orchestrator.

Each tool function signature: handler(store, **kwargs) -> dict
The store is bound at registration time.

Rules:
- Tools only read the record store.
- "Not found" is a result ({"error": ...}), not an exception.
"""
from functools import partial
from typing import Optional
from assistant.agent.registry import ToolRegistry
from assistant.models.tool import ToolDescriptor, ToolParameter
from assistant.store.records import RecordStore


# ---------------------------------------------------------------------------
# customers.list
# ---------------------------------------------------------------------------
def _list_customers(store: RecordStore, *, type: Optional[str] = None) -> dict:
    """List customers, optionally filtered by type."""
    customers = store.find_by_field("type", type)
    return {
        "count": len(customers),
        "customers": [c.to_dict() for c in customers],
    }


LIST_CUSTOMERS = ToolDescriptor(
    name="list_customers",
    description="List customers, optionally filtered by type. Leave type blank to list all customers.",
    parameters=(
        ToolParameter("type", "string", "Customer type, e.g. 'Restaurant'. Blank for all.", required=False),
    ),
)


# ---------------------------------------------------------------------------
# customers.list_types
# ---------------------------------------------------------------------------
def _list_customer_types(store: RecordStore) -> dict:
    """Distinct customer types, in the order they first appear."""
    types = store.distinct_values("type")
    return {"count": len(types), "types": types}


LIST_CUSTOMER_TYPES = ToolDescriptor(
    name="list_customer_types",
    description="List customer types",
)


# ---------------------------------------------------------------------------
# customers.get
# ---------------------------------------------------------------------------
def _get_customer(store: RecordStore, *, customer_id: int) -> dict:
    """Get details for a single customer."""
    customer = store.get(customer_id)
    if not customer:
        return {"error": f"Customer {customer_id} not found."}
    return customer.to_dict()


GET_CUSTOMER = ToolDescriptor(
    name="get_customer",
    description="Get a single customer's name, location and type by ID.",
    parameters=(
        ToolParameter("customer_id", "integer", "ID of the customer record."),
    ),
)


def register_customer_tools(registry: ToolRegistry, store: RecordStore) -> ToolRegistry:
    registry.register(LIST_CUSTOMERS, partial(_list_customers, store))
    registry.register(LIST_CUSTOMER_TYPES, partial(_list_customer_types, store))
    registry.register(GET_CUSTOMER, partial(_get_customer, store))
    return registry
