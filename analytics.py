"""
Per-tenant counters: product views, order count and revenue.
"""

from typing import Any, Dict

from database import load_json, lock_for, save_json, tenant_paths
from schemas import Order, to_decimal


def load_analytics(tenant_id: str) -> Dict[str, Any]:
    data = load_json(tenant_paths(tenant_id).analytics, {})
    if not isinstance(data, dict):
        data = {}
    views = data.get("productViews")
    data["productViews"] = views if isinstance(views, dict) else {}
    data.setdefault("orderCount", 0)
    data.setdefault("revenue", "0")
    return data


def record_product_view(tenant_id: str, product_id: str) -> None:
    with lock_for(tenant_id):
        data = load_analytics(tenant_id)
        views = data["productViews"]
        views[product_id] = int(views.get(product_id, 0)) + 1
        save_json(tenant_paths(tenant_id).analytics, data)


def record_order(tenant_id: str, order: Order) -> None:
    with lock_for(tenant_id):
        data = load_analytics(tenant_id)
        data["orderCount"] = int(data["orderCount"]) + 1
        data["revenue"] = str(to_decimal(data["revenue"]) + order.total)
        save_json(tenant_paths(tenant_id).analytics, data)
