"""
Order and stock ledger.

Placing an order writes three files, in this order:

1. orders.json      the new order is appended
2. products.json    stock of every line is decremented, clamped at zero
3. stock_log.json   one row per line, delta = -qty, reason = "order"

The writes are independent; a crash between them leaves the earlier ones in
place. Overselling is not rejected: stock bottoms out at zero and the order
goes through.
"""

import hashlib
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from catalog import find_product, find_variant, load_config, load_products
from database import load_list, lock_for, save_json, tenant_paths
from errors import NotFound, ValidationFailed
from pricing import COD_PAYMENT_ID, compute_totals
from schemas import CheckoutRequest, Order, OrderLine, StockLogEntry

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def next_order_id(orders: List[Dict[str, Any]]) -> str:
    """Wall-clock milliseconds, bumped past the newest existing numeric id."""
    candidate = int(time.time() * 1000)
    for order in reversed(orders):
        last = str(order.get("id", "")) if isinstance(order, dict) else ""
        if last.isdigit():
            candidate = max(candidate, int(last) + 1)
            break
    return str(candidate)


def proof_hash(order_id: str, total: Decimal, created_at: str, email: str, tenant_id: str) -> str:
    payload = {
        "orderId": order_id,
        "total": str(total),
        "timestamp": created_at,
        "customerEmail": email,
        "tenantId": tenant_id,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def payment_status_for(payment_method_id: str) -> str:
    """
    Cash on delivery waits for the courier; every other method waits for a
    payment provider. Older stores wrote PENDING_STRIPE for card orders and
    PENDING_COD for everything else, so bank transfers looked like cash.
    """
    return "PENDING_COD" if payment_method_id == COD_PAYMENT_ID else "PENDING_PAYMENT"


def _current_stock(holder: Dict[str, Any]) -> Optional[int]:
    value = holder.get("stock")
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def apply_stock_delta(product: Dict[str, Any], variant_id: Optional[str], delta: int) -> Optional[int]:
    """
    Change stock on the product (or one of its variants) in place.
    Returns the new stock, or None when that stock is not tracked.
    """
    holder = product
    if variant_id:
        holder = find_variant(product, variant_id)
        if holder is None:
            return None
    current = _current_stock(holder)
    if current is None:
        return None
    holder["stock"] = max(0, current + delta)
    return holder["stock"]


def _log_row(product_id, variant_id, delta, reason, created_at, order_id=None, stock_after=None) -> Dict[str, Any]:
    return StockLogEntry(
        id=uuid.uuid4().hex[:12],
        product_id=product_id,
        variant_id=variant_id,
        delta=delta,
        reason=reason,
        order_id=order_id,
        stock_after=stock_after,
        created_at=created_at,
    ).dump()


def deduct_stock(products: List[Dict[str, Any]], lines: List[OrderLine], order_id: str, created_at: str) -> List[Dict[str, Any]]:
    rows = []
    for line in lines:
        stock_after = None
        product = find_product(products, line.product_id)
        if product is not None:
            stock_after = apply_stock_delta(product, line.variant_id, -line.qty)
        rows.append(_log_row(line.product_id, line.variant_id, -line.qty, "order", created_at, order_id, stock_after))
    return rows


def place_order(tenant_id: str, checkout: CheckoutRequest) -> Order:
    """
    Price the cart and record the order. Not idempotent: the same cart sent
    twice makes two orders and deducts stock twice.
    """
    paths = tenant_paths(tenant_id)
    with lock_for(tenant_id):
        config = load_config(tenant_id)
        products = load_products(tenant_id)
        totals = compute_totals(
            checkout.items,
            checkout.shipping_method_id,
            checkout.payment_method_id,
            products,
            config.get("shippingOptions"),
            config.get("paymentOptions"),
        )

        orders = load_list(paths.orders)
        order_id = next_order_id(orders)
        created_at = _utc_now()
        order = Order(
            id=order_id,
            tenant_id=tenant_id,
            items=totals.lines,
            customer_name=checkout.name,
            email=checkout.email,
            wallet=checkout.wallet,
            notes=checkout.notes,
            shipping_method_id=totals.shipping_method.id,
            payment_method_id=totals.payment_method.id,
            shipping_method_label=totals.shipping_method.label,
            payment_method_label=totals.payment_method.label,
            subtotal=totals.subtotal,
            shipping_cost=totals.shipping_cost,
            cod_fee=totals.cod_fee,
            gateway_fee=totals.gateway_fee,
            total=totals.total,
            payment_status=payment_status_for(totals.payment_method.id),
            proof_hash=proof_hash(order_id, totals.total, created_at, checkout.email, tenant_id),
            created_at=created_at,
        )

        orders.append(order.dump())
        save_json(paths.orders, orders)

        rows = deduct_stock(products, totals.lines, order_id, created_at)
        save_json(paths.products, products)

        stock_log = load_list(paths.stock_log)
        stock_log.extend(rows)
        save_json(paths.stock_log, stock_log)

    logger.info("Tenant %s placed order %s: %d lines, total %s", tenant_id, order_id, len(totals.lines), order.total)
    return order


def adjust_stock(tenant_id: str, product_id: str, variant_id: Optional[str], delta: int, reason: str = "manual") -> Dict[str, Any]:
    if delta == 0:
        raise ValidationFailed("Stock delta must not be zero")
    paths = tenant_paths(tenant_id)
    with lock_for(tenant_id):
        products = load_products(tenant_id)
        product = find_product(products, product_id)
        if product is None:
            raise NotFound("Product not found")
        if variant_id and find_variant(product, variant_id) is None:
            raise NotFound("Variant not found")
        stock_after = apply_stock_delta(product, variant_id, delta)
        if stock_after is None:
            raise ValidationFailed("Stock is not tracked for this item")
        save_json(paths.products, products)

        row = _log_row(product_id, variant_id, delta, reason or "manual", _utc_now(), stock_after=stock_after)
        stock_log = load_list(paths.stock_log)
        stock_log.append(row)
        save_json(paths.stock_log, stock_log)

    logger.info("Tenant %s adjusted stock of %s/%s by %d -> %d", tenant_id, product_id, variant_id or "-", delta, stock_after)
    return row


def load_orders(tenant_id: str) -> List[Dict[str, Any]]:
    return [o for o in load_list(tenant_paths(tenant_id).orders) if isinstance(o, dict)]


def load_stock_log(tenant_id: str) -> List[Dict[str, Any]]:
    return load_list(tenant_paths(tenant_id).stock_log)
