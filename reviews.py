"""
Product reviews, accepted only from customers who bought the product.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from catalog import get_product
from database import load_list, lock_for, save_json, tenant_paths
from errors import Forbidden
from ledger import load_orders
from schemas import Review, ReviewRequest

logger = logging.getLogger(__name__)


def has_purchased(orders: List[Dict[str, Any]], email: str, product_id: str) -> bool:
    wanted = email.strip().lower()
    for order in orders:
        if str(order.get("email") or "").strip().lower() != wanted:
            continue
        if any(isinstance(line, dict) and line.get("productId") == product_id for line in order.get("items") or []):
            return True
    return False


def list_reviews(tenant_id: str, product_id: str) -> List[Dict[str, Any]]:
    rows = load_list(tenant_paths(tenant_id).reviews)
    return [r for r in rows if isinstance(r, dict) and r.get("productId") == product_id]


def submit_review(tenant_id: str, req: ReviewRequest) -> Review:
    get_product(tenant_id, req.product_id)
    if not has_purchased(load_orders(tenant_id), req.email, req.product_id):
        raise Forbidden("Only customers who bought this product can review it")

    review = Review(
        id=uuid.uuid4().hex[:12],
        product_id=req.product_id,
        name=req.name.strip(),
        email=req.email.strip().lower(),
        rating=req.rating,
        text=req.text.strip(),
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    paths = tenant_paths(tenant_id)
    with lock_for(tenant_id):
        rows = load_list(paths.reviews)
        rows.append(review.dump())
        save_json(paths.reviews, rows)
    logger.info("Tenant %s: review %s for product %s", tenant_id, review.id, req.product_id)
    return review
