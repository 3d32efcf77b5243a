"""
Order totals.

Prices always come from the live catalog. A cart line contributes its ids and
quantity; anything else the client sends is ignored.

    total = subtotal + shippingCost + codFee + gatewayFee

All amounts are Decimal and nothing is rounded here.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError

from catalog import find_product, find_variant
from errors import ValidationFailed
from schemas import CartItem, OrderLine, PaymentOption, ShippingOption, to_decimal

COD_PAYMENT_ID = "COD"


class CheckoutError(ValidationFailed):
    pass


class EmptyCartError(CheckoutError):
    def __init__(self):
        super().__init__("Cart is empty")


class InvalidShippingMethod(CheckoutError):
    def __init__(self, method_id: str):
        super().__init__(f"Invalid shipping method: {method_id}")


class InvalidPaymentMethod(CheckoutError):
    def __init__(self, method_id: str):
        super().__init__(f"Invalid payment method: {method_id}")


class IncompatiblePaymentMethod(CheckoutError):
    def __init__(self, payment_id: str, shipping_id: str):
        super().__init__(f"Payment method {payment_id} is not available for shipping method {shipping_id}")


class Totals(BaseModel):
    lines: List[OrderLine]
    subtotal: Decimal
    shipping_cost: Decimal
    cod_fee: Decimal
    gateway_fee: Decimal
    total: Decimal
    shipping_method: ShippingOption
    payment_method: PaymentOption


def resolve_line(item: CartItem, products: List[Dict[str, Any]]) -> Optional[OrderLine]:
    """Price one cart line from the catalog, or None when it cannot be resolved."""
    product = find_product(products, item.id)
    if product is None:
        return None

    variant = None
    if item.variant_id:
        variant = find_variant(product, item.variant_id)
        if variant is None:
            return None
    elif product.get("variants"):
        # a variant product bought without a variant has no price or stock to use
        return None

    if variant is not None and variant.get("price") is not None:
        unit_price = to_decimal(variant.get("price"))
    else:
        unit_price = to_decimal(product.get("price"))

    return OrderLine(
        product_id=product["id"],
        variant_id=variant.get("id") if variant is not None else None,
        name=str(product.get("name") or ""),
        label=variant.get("label") if variant is not None else None,
        unit_price=unit_price,
        qty=item.qty,
        line_total=unit_price * item.qty,
    )


def resolve_cart(cart: Iterable[CartItem], products: List[Dict[str, Any]]) -> List[OrderLine]:
    lines = []
    for item in cart:
        line = resolve_line(item, products)
        if line is not None:
            lines.append(line)
    return lines


def _find_option(options: Any, option_id: str, model):
    for raw in options or []:
        if isinstance(raw, dict) and raw.get("id") == option_id:
            try:
                return model.model_validate(raw)
            except ValidationError:
                return None
    return None


def compute_totals(
    cart: Iterable[CartItem],
    shipping_method_id: str,
    payment_method_id: str,
    products: List[Dict[str, Any]],
    shipping_options: Any,
    payment_options: Any,
) -> Totals:
    lines = resolve_cart(cart, products)
    if not lines:
        raise EmptyCartError()

    shipping = _find_option(shipping_options, shipping_method_id, ShippingOption)
    if shipping is None:
        raise InvalidShippingMethod(shipping_method_id)
    payment = _find_option(payment_options, payment_method_id, PaymentOption)
    if payment is None:
        raise InvalidPaymentMethod(payment_method_id)
    if shipping.allowed_payment_methods is not None and payment.id not in shipping.allowed_payment_methods:
        raise IncompatiblePaymentMethod(payment.id, shipping.id)

    subtotal = sum((line.line_total for line in lines), Decimal("0"))
    shipping_cost = shipping.base
    cod_fee = shipping.cod_fee if payment.id == COD_PAYMENT_ID else Decimal("0")
    gateway_fee = subtotal * payment.gateway_surcharge_percent
    total = subtotal + shipping_cost + cod_fee + gateway_fee

    return Totals(
        lines=lines,
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        cod_fee=cod_fee,
        gateway_fee=gateway_fee,
        total=total,
        shipping_method=shipping,
        payment_method=payment,
    )
