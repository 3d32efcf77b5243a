"""
Data Schemas for the multi-tenant storefront

Each Pydantic model describes a record stored in one of the per-tenant JSON
files (or the shared registry / referral files). Field names are snake_case in
Python and camelCase on disk and over the wire (aliases), so files written by
older versions of the store keep loading.

Money is carried as Decimal everywhere and serialized as a decimal string, so
totals keep full precision through checkout, persistence and payloads.
"""

from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator


def to_decimal(value: Any) -> Decimal:
    """Lenient number coercion: anything unparseable counts as zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return Decimal("0")
    return result if result.is_finite() else Decimal("0")


Money = Annotated[Decimal, BeforeValidator(to_decimal)]


def to_text(value: Any) -> Any:
    """null stands for an empty string in hand-edited files."""
    return "" if value is None else value


def to_flag(value: Any) -> Any:
    return True if value is None else value


Text = Annotated[str, BeforeValidator(to_text)]


class Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============ Tenancy ============
class ReferralConfig(Record):
    code: str = Field(..., min_length=1, description="Referral code credited for this tenant")
    percent: Money = Field(Decimal("0"), description="Commission as a fraction, e.g. 0.1 for 10%")


class Tenant(Record):
    """
    Tenant registry entry
    File: "tenants.json"
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., description="Tenant id, also the directory name")
    domain: Text = Field("", description="Host name the store is served on")
    support_tier: Text = Field("SELF_SERVICE", alias="supportTier")
    admin_password_hash: Text = Field("", alias="adminPasswordHash")
    active: Annotated[bool, BeforeValidator(to_flag)] = True
    referral: Optional[ReferralConfig] = None
    created_at: Optional[str] = Field(None, alias="createdAt")

    def public(self) -> dict:
        data = self.dump()
        data.pop("adminPasswordHash", None)
        return data


# ============ Store configuration ============
class ShippingOption(Record):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    label: str = ""
    base: Money = Decimal("0")
    cod_fee: Money = Field(Decimal("0"), alias="codFee")
    allowed_payment_methods: Optional[List[str]] = Field(None, alias="allowedPaymentMethods")


class PaymentOption(Record):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    label: str = ""
    gateway_surcharge_percent: Money = Field(Decimal("0"), alias="gatewaySurchargePercent")


# ============ Catalog ============
class Variant(Record):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    label: str = ""
    price: Optional[Money] = None
    stock: Optional[int] = Field(None, ge=0)


class Product(Record):
    """
    Catalog entry
    File: "products.json"
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., min_length=1)
    name: str = ""
    price: Money = Field(Decimal("0"), ge=0, description="Unit price in the store currency")
    category_id: Optional[str] = Field(None, alias="categoryId")
    stock: Optional[int] = Field(None, ge=0, description="Units in stock, absent when untracked")
    variants: Optional[List[Variant]] = None
    has_digital_content: Optional[bool] = Field(None, alias="hasDigitalContent")

    @model_validator(mode="after")
    def check_stock_location(self):
        if self.variants and self.stock is not None:
            raise ValueError(f"product {self.id}: stock is tracked per variant, drop the product-level stock")
        return self


class Category(Record):
    """
    File: "categories.json"
    """
    id: str = Field(..., min_length=1)
    name: str = ""
    slug: str = Field(..., min_length=1)


# ============ Checkout ============
class CartItem(BaseModel):
    """A cart line as sent by the client. Only ids and quantity are read."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    variant_id: Optional[str] = Field(None, alias="variantId")
    qty: int = Field(1, gt=0)


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[CartItem] = Field(default_factory=list)
    product_id: Optional[str] = Field(None, alias="productId", description="Single-product checkout shortcut")
    name: str = Field("", description="Customer name")
    email: str = ""
    wallet: str = ""
    notes: str = ""
    shipping_method_id: str = Field("", alias="shippingMethodId")
    payment_method_id: str = Field("", alias="paymentMethodId")

    @model_validator(mode="after")
    def expand_single_product(self):
        if not self.items and self.product_id:
            self.items = [CartItem(id=self.product_id, qty=1)]
        return self


class OrderLine(Record):
    product_id: str = Field(..., alias="productId")
    variant_id: Optional[str] = Field(None, alias="variantId")
    name: str = ""
    label: Optional[str] = None
    unit_price: Money = Field(..., alias="unitPrice")
    qty: int
    line_total: Money = Field(..., alias="lineTotal")


class Order(Record):
    """
    Orders, immutable once written
    File: "orders.json"
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    tenant_id: str = Field(..., alias="tenantId")
    items: List[OrderLine]
    customer_name: str = Field("", alias="customerName")
    email: str = ""
    wallet: str = ""
    notes: str = ""
    shipping_method_id: str = Field(..., alias="shippingMethodId")
    payment_method_id: str = Field(..., alias="paymentMethodId")
    shipping_method_label: str = Field("", alias="shippingMethodLabel")
    payment_method_label: str = Field("", alias="paymentMethodLabel")
    subtotal: Money
    shipping_cost: Money = Field(..., alias="shippingCost")
    cod_fee: Money = Field(..., alias="codFee")
    gateway_fee: Money = Field(..., alias="gatewayFee")
    total: Money
    payment_status: str = Field(..., alias="paymentStatus")
    proof_hash: str = Field(..., alias="proofHash")
    created_at: str = Field(..., alias="createdAt")


class StockLogEntry(Record):
    """
    Append-only stock audit trail
    File: "stock_log.json"
    """
    id: str
    product_id: str = Field(..., alias="productId")
    variant_id: Optional[str] = Field(None, alias="variantId")
    delta: int
    reason: str
    order_id: Optional[str] = Field(None, alias="orderId")
    stock_after: Optional[int] = Field(None, alias="stockAfter")
    created_at: str = Field(..., alias="createdAt")


# ============ Reviews ============
class ReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId")
    name: str = ""
    email: str = Field(..., min_length=3)
    rating: int = Field(..., ge=1, le=5)
    text: str = Field("", max_length=2000)


class Review(Record):
    """
    File: "reviews.json"
    """
    id: str
    product_id: str = Field(..., alias="productId")
    name: str = ""
    email: str
    rating: int
    text: str = ""
    created_at: str = Field(..., alias="createdAt")


# ============ Referrals ============
class ReferralTotals(Record):
    earned_fiat: Money = Field(Decimal("0"), alias="earnedFiat")
    paid_fiat: Money = Field(Decimal("0"), alias="paidFiat")


class ReferralAccount(Record):
    """
    File: "referrals.json"
    """
    code: str
    percent: Money = Decimal("0")
    tenants: List[str] = Field(default_factory=list)
    totals: ReferralTotals = Field(default_factory=ReferralTotals)


class ReferralEarning(Record):
    """
    File: "referral_earnings.json"
    """
    id: str
    tenant_id: str = Field(..., alias="tenantId")
    ref_code: str = Field(..., alias="refCode")
    amount_fiat: Money = Field(..., alias="amountFiat")
    currency: Optional[str] = None
    status: str = Field("pending", description="pending|paid")
    event_id: Optional[str] = Field(None, alias="eventId")
    order_id: Optional[str] = Field(None, alias="orderId")
    created_at: str = Field(..., alias="createdAt")
    paid_at: Optional[str] = Field(None, alias="paidAt")
    payment_ref: Optional[str] = Field(None, alias="paymentRef")


class PaymentEvent(BaseModel):
    """Payment-completion event posted by the payment provider."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    type: str = "payment.succeeded"
    tenant_id: str = Field(..., alias="tenantId")
    amount: Money
    currency: Optional[str] = None
    order_id: Optional[str] = Field(None, alias="orderId")


# ============ Admin / root payloads ============
class SettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    store_name: Optional[str] = Field(None, alias="storeName")
    primary_color: Optional[str] = Field(None, alias="primaryColor")
    accent_color: Optional[str] = Field(None, alias="accentColor")
    font_family: Optional[str] = Field(None, alias="fontFamily")
    hero_text: Optional[str] = Field(None, alias="heroText")
    web3_domain: Optional[str] = Field(None, alias="web3Domain")
    logo_path: Optional[str] = Field(None, alias="logoPath")
    theme_menu_bg: Optional[str] = Field(None, alias="themeMenuBg")
    theme_menu_text: Optional[str] = Field(None, alias="themeMenuText")
    theme_menu_active_bg: Optional[str] = Field(None, alias="themeMenuActiveBg")
    theme_menu_active_text: Optional[str] = Field(None, alias="themeMenuActiveText")
    theme_button_radius: Optional[str] = Field(None, alias="themeButtonRadius")


class ShippingUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: Optional[str] = None
    base: Optional[Money] = None
    cod_fee: Optional[Money] = Field(None, alias="codFee")


class PaymentUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: Optional[str] = None
    gateway_surcharge_percent: Optional[Money] = Field(None, alias="gatewaySurchargePercent")


class ShippingPaymentUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    shipping_options: List[ShippingUpdate] = Field(default_factory=list, alias="shippingOptions")
    payment_options: List[PaymentUpdate] = Field(default_factory=list, alias="paymentOptions")


class CategoryUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category_id: str = Field(..., alias="categoryId")
    name: Optional[str] = None
    slug: Optional[str] = None


class CategoryDelete(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category_id: str = Field(..., alias="categoryId")


class ProductsReplace(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    products_json: str = Field(..., alias="productsJson", description="Full catalog as a JSON array")


class StockAdjustment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId")
    variant_id: Optional[str] = Field(None, alias="variantId")
    delta: int
    reason: str = "manual"


class CreateTenant(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    domain: str = ""
    support_tier: Optional[str] = Field(None, alias="supportTier")
    admin_password: str = Field("", alias="adminPassword")
    template_id: Optional[str] = Field(None, alias="templateId")


class UpdateTenant(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(..., alias="tenantId")
    domain: Optional[str] = None
    support_tier: Optional[str] = Field(None, alias="supportTier")
    active: Optional[bool] = None
    referral: Optional[ReferralConfig] = None
    clear_referral: bool = Field(False, alias="clearReferral")


class ResetAdminPassword(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(..., alias="tenantId")
    new_password: str = Field("", alias="newPassword")


class ReferralPayout(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    earning_ids: List[str] = Field(default_factory=list, alias="earningIds")
    ref_code: Optional[str] = Field(None, alias="refCode")
    payment_ref: Optional[str] = Field(None, alias="paymentRef")
