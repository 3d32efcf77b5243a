import json
from decimal import Decimal

from fastapi.testclient import TestClient

from catalog import find_product, load_categories, load_config, load_products
from config import settings
from database import registry_path, save_json
from main import app
from referrals import list_accounts
from tenancy import find_tenant

from conftest import WEBHOOK_SECRET

CART = {
    "items": [{"id": "tee", "qty": 1, "price": 0.01}],
    "name": "Ada",
    "email": "Ada@Example.com",
    "shippingMethodId": "COURIER",
    "paymentMethodId": "COD",
}


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_storefront_filters_by_category(client):
    body = client.get("/", params={"category": "home"}).json()

    assert body["tenant"]["id"] == "demo"
    assert [p["id"] for p in body["products"]] == ["mug"]
    assert "orderWebhookSecret" not in body["config"]
    assert client.get("/", params={"category": "nope"}).json()["products"] == []
    assert len(client.get("/").json()["products"]) == 3


def test_host_resolves_other_tenant(store):
    acme = TestClient(app, base_url="http://acme.example.com")
    assert acme.get("/").json()["tenant"]["id"] == "acme"


def test_unknown_host_falls_back(store):
    stranger = TestClient(app, base_url="http://stranger.test")
    assert stranger.get("/").json()["tenant"]["id"] == "demo"


def test_empty_registry_is_service_unavailable(client):
    save_json(registry_path(), [])
    response = client.get("/")

    assert response.status_code == 503


def test_product_detail_and_views(client, admin_headers):
    assert client.get("/product/tee").json()["product"]["name"] == "T-Shirt"
    assert client.get("/product/nope").status_code == 404

    stats = client.get("/admin/analytics", headers=admin_headers).json()
    assert stats["productViews"] == {"tee": 1}


def test_checkout(client, admin_headers):
    response = client.post("/checkout", json=CART)
    assert response.status_code == 200
    order = response.json()["order"]

    assert Decimal(order["subtotal"]) == Decimal("19.9")
    assert Decimal(order["codFee"]) == Decimal("2")
    assert Decimal(order["total"]) == Decimal("25.4")
    assert response.json()["proofHash"] == order["proofHash"]
    assert find_product(load_products("demo"), "tee")["stock"] == 4

    orders = client.get("/admin/orders", headers=admin_headers).json()
    assert [o["id"] for o in orders] == [order["id"]]
    stats = client.get("/admin/analytics", headers=admin_headers).json()
    assert stats["orderCount"] == 1 and Decimal(stats["revenue"]) == Decimal("25.4")


def test_checkout_single_product_shortcut(client):
    payload = {"productId": "guide", "email": "a@b.c", "shippingMethodId": "POST", "paymentMethodId": "BANK"}
    order = client.post("/checkout", json=payload).json()["order"]

    assert [line["productId"] for line in order["items"]] == ["guide"]


def test_checkout_errors(client):
    assert client.post("/checkout", json=dict(CART, items=[{"id": "nope", "qty": 1}])).json()["detail"] == "Cart is empty"
    assert client.post("/checkout", json=dict(CART, shippingMethodId="X")).status_code == 400
    assert client.post("/checkout", json=dict(CART, paymentMethodId="X")).status_code == 400
    incompatible = client.post("/checkout", json=dict(CART, shippingMethodId="PICKUP"))
    assert incompatible.status_code == 400
    assert "not available" in incompatible.json()["detail"]
    assert client.post("/checkout", json=dict(CART, items=[{"id": "tee", "qty": 0}])).status_code == 422


def test_reviews_require_verified_purchase(client):
    review = {"productId": "tee", "email": "ada@example.com", "name": "Ada", "rating": 5, "text": "Great"}
    assert client.post("/reviews", json=review).status_code == 403

    client.post("/checkout", json=CART)
    response = client.post("/reviews", json=review)
    assert response.status_code == 201
    assert client.get("/product/tee/reviews").json()[0]["rating"] == 5
    assert client.post("/reviews", json=dict(review, productId="ghost")).status_code == 404
    assert client.post("/reviews", json=dict(review, rating=6)).status_code == 422


def test_admin_requires_password(client, admin_headers):
    assert client.get("/admin").status_code == 401
    assert client.get("/admin", headers={"X-Admin-Password": "wrong"}).status_code == 401
    body = client.get("/admin", headers=admin_headers).json()
    assert body["permissions"]["canEditProducts"] is True
    assert "adminPasswordHash" not in body["tenant"]


def test_admin_tier_is_checked_before_password(store):
    acme = TestClient(app, base_url="http://acme.example.com")
    response = acme.post("/admin/settings", json={"storeName": "x"}, headers={"X-Admin-Password": "wrong"})

    assert response.status_code == 403


def test_admin_settings(client, admin_headers):
    response = client.post("/admin/settings", json={"storeName": "Renamed", "heroText": "", "themeMenuBg": "#000"}, headers=admin_headers)

    assert response.status_code == 200
    config = load_config("demo")
    assert config["storeName"] == "Renamed"
    assert config["theme"]["menuBg"] == "#000"
    assert config["theme"]["buttonRadius"] == "4px"


def test_admin_shipping_payment(client, admin_headers):
    payload = {
        "shippingOptions": [{"id": "COURIER", "base": 5, "label": "Express"}],
        "paymentOptions": [{"id": "CARD", "gatewaySurchargePercent": 0.03}],
    }
    assert client.post("/admin/shipping-payment", json=payload, headers=admin_headers).status_code == 200

    config = load_config("demo")
    courier = config["shippingOptions"][0]
    assert courier["base"] == 5 and courier["label"] == "Express"
    assert courier["allowedPaymentMethods"] == ["CARD", "COD"]
    assert config["paymentOptions"][0]["gatewaySurchargePercent"] == 0.03

    unknown = {"shippingOptions": [{"id": "TELEPORT", "base": 1}]}
    assert client.post("/admin/shipping-payment", json=unknown, headers=admin_headers).status_code == 404


def test_admin_categories(client, admin_headers):
    add = client.post("/admin/categories/add", json={"id": "toys", "name": "Toys", "slug": "toys"}, headers=admin_headers)
    assert add.status_code == 200
    dup = client.post("/admin/categories/add", json={"id": "x", "name": "X", "slug": "toys"}, headers=admin_headers)
    assert dup.status_code == 400

    clash = client.post("/admin/categories/update", json={"categoryId": "toys", "slug": "home"}, headers=admin_headers)
    assert clash.status_code == 400
    client.post("/admin/categories/update", json={"categoryId": "toys", "name": "Games"}, headers=admin_headers)
    assert load_categories("demo")[-1] == {"id": "toys", "name": "Games", "slug": "toys"}
    assert client.post("/admin/categories/update", json={"categoryId": "ghost"}, headers=admin_headers).status_code == 404

    client.post("/admin/categories/delete", json={"categoryId": "toys"}, headers=admin_headers)
    assert [c["id"] for c in load_categories("demo")] == ["apparel", "home"]


def test_admin_replace_products(client, admin_headers):
    catalog = [{"id": "cap", "name": "Cap", "price": 12, "stock": 2, "badge": "new"}]
    ok = client.post("/admin/products", json={"productsJson": json.dumps(catalog)}, headers=admin_headers)
    assert ok.status_code == 200
    assert load_products("demo") == catalog

    for bad in ["{not json", '{"id": "cap"}', '[{"name": "no id"}]', '[{"id": "a"}, {"id": "a"}]',
                '[{"id": "v", "stock": 1, "variants": [{"id": "v1", "stock": 1}]}]']:
        response = client.post("/admin/products", json={"productsJson": bad}, headers=admin_headers)
        assert response.status_code == 400, bad
    assert load_products("demo") == catalog


def test_admin_stock_adjustment(client, admin_headers):
    response = client.post("/admin/stock", json={"productId": "tee", "delta": 10, "reason": "restock"}, headers=admin_headers)

    assert response.json()["stockAfter"] == 15
    log = client.get("/admin/stock-log", headers=admin_headers).json()
    assert log[0]["reason"] == "restock"


def test_root_tenant_lifecycle(client, root_headers):
    assert client.get("/root/tenants").status_code == 401
    assert client.get("/root/tenants", headers={"X-Root-Password": "nope"}).status_code == 401

    created = client.post("/root/tenants/create", headers=root_headers, json={
        "id": "bazaar", "domain": "bazaar.test", "supportTier": "MANAGEMENT_START", "adminPassword": "pw",
    })
    assert created.status_code == 201
    assert "adminPasswordHash" not in created.json()

    updated = client.post("/root/tenants/update", headers=root_headers, json={
        "tenantId": "bazaar", "active": False, "referral": {"code": "BZ", "percent": 0.05},
    })
    assert updated.json()["active"] is False
    assert find_tenant("bazaar").referral.code == "BZ"

    reset = client.post("/root/tenants/reset-admin-password", headers=root_headers,
                        json={"tenantId": "bazaar", "newPassword": "pw2"})
    assert reset.json()["ok"] is True

    bazaar = TestClient(app, base_url="http://bazaar.test")
    assert bazaar.get("/admin", headers={"X-Admin-Password": "pw2"}).status_code == 200

    ids = [t["id"] for t in client.get("/root/tenants", headers=root_headers).json()]
    assert ids == ["demo", "acme", "bazaar"]


def test_root_disabled_without_password(client, monkeypatch):
    monkeypatch.setattr(settings, "root_admin_password", None)
    assert client.get("/root/tenants", headers={"X-Root-Password": ""}).status_code == 401


def test_payment_webhook_accrues_referral(client, root_headers):
    event = {"id": "evt_9", "type": "payment.succeeded", "tenantId": "demo", "amount": 80, "currency": "EUR"}
    assert client.post("/webhooks/payments", json=event).status_code == 401

    headers = {"X-Webhook-Secret": WEBHOOK_SECRET}
    body = client.post("/webhooks/payments", json=event, headers=headers).json()
    assert body["accrued"] is True
    assert Decimal(body["earning"]["amountFiat"]) == Decimal("8.00")
    assert client.post("/webhooks/payments", json=event, headers=headers).json()["accrued"] is False

    ignored = dict(event, id="evt_10", type="payment.failed")
    assert client.post("/webhooks/payments", json=ignored, headers=headers).json()["accrued"] is False

    listing = client.get("/root/referrals", params={"code": "PARTNER1"}, headers=root_headers).json()
    earning_id = listing["earnings"][0]["id"]
    paid = client.post("/root/referrals/payout", json={"earningIds": [earning_id], "paymentRef": "wire-1"},
                       headers=root_headers).json()["paid"]
    assert paid[0]["status"] == "paid"
    totals = list_accounts()[0].totals
    assert totals.earned_fiat == Decimal("8.00") and totals.paid_fiat == Decimal("8.00")


def test_payment_webhook_disabled_without_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "payment_webhook_secret", None)
    event = {"tenantId": "demo", "amount": 1}

    assert client.post("/webhooks/payments", json=event).status_code == 503


def test_tenant_with_invalid_id_is_not_served(client):
    save_json(registry_path(), [{"id": "My Shop", "domain": "shop.example.com", "active": True}])
    response = client.get("/")

    assert response.status_code == 503
