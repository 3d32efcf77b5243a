import hmac
import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import admin
import analytics
import referrals
import reviews
import tenancy
from auth import permissions_for, require_admin, require_root
from catalog import get_product, list_products, load_categories, load_config, load_products, public_config
from config import configure_logging, settings
from database import init_data_root
from errors import ServiceUnavailable, StorefrontError, Unauthorized
from integrations import dispatch_order_side_effects
from ledger import adjust_stock, load_orders, load_stock_log, place_order
from schemas import (
    Category,
    CategoryDelete,
    CategoryUpdate,
    CheckoutRequest,
    CreateTenant,
    PaymentEvent,
    ProductsReplace,
    ReferralPayout,
    ResetAdminPassword,
    ReviewRequest,
    SettingsUpdate,
    ShippingPaymentUpdate,
    StockAdjustment,
    Tenant,
    UpdateTenant,
)

logger = logging.getLogger("storefront")

PAID_EVENT_TYPES = {"payment.succeeded", "checkout.session.completed", "invoice.paid"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_data_root()
    yield


app = FastAPI(title="Storefront API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Helpers
def current_tenant(request: Request) -> Tenant:
    tenant = tenancy.resolve_tenant(
        tenancy.load_registry(),
        request.headers.get("host", ""),
        settings.default_tenant_id,
    )
    if tenant is None:
        raise ServiceUnavailable("No tenant configured for this host. Check tenants.json.")
    return tenant


def admin_password(x_admin_password: Optional[str] = Header(None)) -> Optional[str]:
    return x_admin_password


def root_password(x_root_password: Optional[str] = Header(None)) -> None:
    require_root(x_root_password)


def admin_view(tenant: Tenant, **extra) -> dict:
    return {
        "tenant": tenant.public(),
        "permissions": permissions_for(tenant.support_tier),
        "config": load_config(tenant.id),
        "categories": load_categories(tenant.id),
        "products": load_products(tenant.id),
        **extra,
    }


@app.get("/health")
def health():
    return {"name": "Storefront", "status": "ok", "tenants": len(tenancy.load_registry())}


# ============ Storefront ============
@app.get("/")
def storefront_home(category: Optional[str] = None, tenant: Tenant = Depends(current_tenant)):
    return {
        "tenant": {"id": tenant.id, "domain": tenant.domain},
        "config": public_config(load_config(tenant.id)),
        "categories": load_categories(tenant.id),
        "products": list_products(tenant.id, category),
        "activeCategory": category,
    }


@app.get("/product/{product_id}")
def product_detail(product_id: str, tenant: Tenant = Depends(current_tenant)):
    product = get_product(tenant.id, product_id)
    analytics.record_product_view(tenant.id, product_id)
    return {
        "config": public_config(load_config(tenant.id)),
        "product": product,
        "reviews": reviews.list_reviews(tenant.id, product_id),
    }


@app.post("/checkout")
def checkout(payload: CheckoutRequest, background_tasks: BackgroundTasks, tenant: Tenant = Depends(current_tenant)):
    order = place_order(tenant.id, payload)
    analytics.record_order(tenant.id, order)
    background_tasks.add_task(dispatch_order_side_effects, order, load_config(tenant.id))
    return {"order": order.dump(), "proofHash": order.proof_hash}


# ============ Reviews ============
@app.get("/product/{product_id}/reviews", response_model=List[dict])
def product_reviews(product_id: str, tenant: Tenant = Depends(current_tenant)):
    get_product(tenant.id, product_id)
    return reviews.list_reviews(tenant.id, product_id)


@app.post("/reviews", status_code=201)
def create_review(payload: ReviewRequest, tenant: Tenant = Depends(current_tenant)):
    return reviews.submit_review(tenant.id, payload).dump()


# ============ Admin ============
@app.get("/admin")
def admin_panel(tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password)
    return admin_view(tenant)


@app.get("/admin/orders", response_model=List[dict])
def admin_orders(tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password)
    return list(reversed(load_orders(tenant.id)[-100:]))


@app.get("/admin/stock-log", response_model=List[dict])
def admin_stock_log(tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password)
    return list(reversed(load_stock_log(tenant.id)[-200:]))


@app.get("/admin/analytics")
def admin_analytics(tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password)
    return analytics.load_analytics(tenant.id)


@app.post("/admin/settings")
def admin_settings(payload: SettingsUpdate, tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password, "canEditSettings")
    admin.update_settings(tenant.id, payload)
    return admin_view(tenant, message="Settings saved")


@app.post("/admin/shipping-payment")
def admin_shipping_payment(payload: ShippingPaymentUpdate, tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password, "canEditSettings")
    admin.update_shipping_payment(tenant.id, payload)
    return admin_view(tenant, message="Shipping and payment options saved")


@app.post("/admin/categories/add")
def admin_add_category(payload: Category, tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password, "canEditCategories")
    admin.add_category(tenant.id, payload)
    return admin_view(tenant, message="Category added")


@app.post("/admin/categories/update")
def admin_update_category(payload: CategoryUpdate, tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password, "canEditCategories")
    admin.update_category(tenant.id, payload.category_id, payload.name, payload.slug)
    return admin_view(tenant, message="Category updated")


@app.post("/admin/categories/delete")
def admin_delete_category(payload: CategoryDelete, tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password, "canEditCategories")
    admin.delete_category(tenant.id, payload.category_id)
    return admin_view(tenant, message="Category deleted")


@app.post("/admin/products")
def admin_products(payload: ProductsReplace, tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password, "canEditProducts")
    admin.replace_products(tenant.id, payload.products_json)
    return admin_view(tenant, message="Products saved")


@app.post("/admin/stock")
def admin_stock(payload: StockAdjustment, tenant: Tenant = Depends(current_tenant), password: Optional[str] = Depends(admin_password)):
    require_admin(tenant, password, "canEditProducts")
    return adjust_stock(tenant.id, payload.product_id, payload.variant_id, payload.delta, payload.reason)


# ============ Root: tenants & referrals ============
@app.get("/root/tenants", response_model=List[dict], dependencies=[Depends(root_password)])
def root_list_tenants():
    return [t.public() for t in tenancy.load_registry()]


@app.post("/root/tenants/create", status_code=201, dependencies=[Depends(root_password)])
def root_create_tenant(payload: CreateTenant):
    tenant = tenancy.create_tenant(
        payload.id,
        domain=payload.domain,
        support_tier=payload.support_tier,
        admin_password=payload.admin_password,
        template_id=payload.template_id,
    )
    return tenant.public()


@app.post("/root/tenants/update", dependencies=[Depends(root_password)])
def root_update_tenant(payload: UpdateTenant):
    tenant = tenancy.update_tenant(
        payload.tenant_id,
        domain=payload.domain,
        support_tier=payload.support_tier,
        active=payload.active,
        referral=payload.referral,
        clear_referral=payload.clear_referral,
    )
    return tenant.public()


@app.post("/root/tenants/reset-admin-password", dependencies=[Depends(root_password)])
def root_reset_admin_password(payload: ResetAdminPassword):
    tenancy.reset_admin_password(payload.tenant_id, payload.new_password)
    return {"ok": True, "tenantId": payload.tenant_id}


@app.get("/root/referrals", dependencies=[Depends(root_password)])
def root_referrals(code: Optional[str] = None, status: Optional[str] = None):
    accounts = referrals.list_accounts()
    if code:
        accounts = [a for a in accounts if a.code == code]
    return {
        "accounts": [a.dump() for a in accounts],
        "earnings": [e.dump() for e in referrals.list_earnings(ref_code=code, status=status)],
    }


@app.post("/root/referrals/payout", dependencies=[Depends(root_password)])
def root_referral_payout(payload: ReferralPayout):
    paid = referrals.mark_paid(payload.earning_ids, ref_code=payload.ref_code, payment_ref=payload.payment_ref)
    return {"paid": [e.dump() for e in paid]}


# ============ Payment provider webhook ============
@app.post("/webhooks/payments")
def payment_webhook(event: PaymentEvent, x_webhook_secret: Optional[str] = Header(None)):
    secret = settings.payment_webhook_secret
    if not secret:
        raise ServiceUnavailable("Payment webhook is not configured")
    if not hmac.compare_digest((x_webhook_secret or "").encode("utf-8"), secret.encode("utf-8")):
        raise Unauthorized("Invalid webhook secret")
    if event.type not in PAID_EVENT_TYPES:
        return {"received": True, "accrued": False}
    earning = referrals.accrue_commission(event)
    return {"received": True, "accrued": earning is not None, "earning": earning.dump() if earning else None}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
