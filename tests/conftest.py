import pytest
from fastapi.testclient import TestClient

from auth import hash_password
from config import settings
from database import registry_path, save_json, tenant_paths

ADMIN_PASSWORD = "shop-admin"
ROOT_PASSWORD = "root-secret"
WEBHOOK_SECRET = "whsec-test"

DEMO_CONFIG = {
    "storeName": "Demo Store",
    "shippingOptions": [
        {"id": "COURIER", "label": "Courier", "base": 3.5, "codFee": 2, "allowedPaymentMethods": ["CARD", "COD"]},
        {"id": "PICKUP", "label": "Pickup", "base": 0, "codFee": 1.5, "allowedPaymentMethods": ["CARD"]},
        {"id": "POST", "label": "Post", "base": 4, "codFee": 1},
    ],
    "paymentOptions": [
        {"id": "CARD", "label": "Card", "gatewaySurchargePercent": 0.02},
        {"id": "COD", "label": "Cash on delivery", "gatewaySurchargePercent": 0},
        {"id": "BANK", "label": "Bank transfer"},
    ],
    "orderWebhookSecret": "do-not-leak",
}

DEMO_PRODUCTS = [
    {"id": "tee", "name": "T-Shirt", "price": 19.9, "stock": 5, "categoryId": "apparel", "colour": "blue"},
    {
        "id": "mug",
        "name": "Mug",
        "price": 8.5,
        "categoryId": "home",
        "variants": [
            {"id": "mug-white", "label": "White", "price": 8.5, "stock": 3},
            {"id": "mug-black", "label": "Black", "price": 9.25, "stock": 0},
        ],
    },
    {"id": "guide", "name": "Care Guide", "price": 4.99, "hasDigitalContent": True},
]

DEMO_CATEGORIES = [
    {"id": "apparel", "name": "Apparel", "slug": "apparel"},
    {"id": "home", "name": "Home", "slug": "home"},
]


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_root", str(tmp_path))
    monkeypatch.setattr(settings, "default_tenant_id", "demo")
    monkeypatch.setattr(settings, "root_admin_password", ROOT_PASSWORD)
    monkeypatch.setattr(settings, "payment_webhook_secret", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "attestation_url", None)
    monkeypatch.setattr(settings, "smtp_host", None)
    monkeypatch.setattr(settings, "bcrypt_rounds", 4)
    return tmp_path


@pytest.fixture
def store(isolated_settings):
    """Two tenants: ``demo`` on shop.example.com and ``acme`` on acme.example.com."""
    save_json(registry_path(), [
        {
            "id": "demo",
            "domain": "shop.example.com",
            "supportTier": "SELF_SERVICE",
            "adminPasswordHash": hash_password(ADMIN_PASSWORD),
            "active": True,
            "referral": {"code": "PARTNER1", "percent": 0.1},
        },
        {
            "id": "acme",
            "domain": "Acme.Example.com",
            "supportTier": "FULL_OPS_START",
            "adminPasswordHash": hash_password(ADMIN_PASSWORD),
            "active": True,
        },
    ])
    paths = tenant_paths("demo")
    save_json(paths.config, DEMO_CONFIG)
    save_json(paths.products, DEMO_PRODUCTS)
    save_json(paths.categories, DEMO_CATEGORIES)
    return paths


@pytest.fixture
def client(store):
    from main import app

    return TestClient(app, base_url="http://shop.example.com")


@pytest.fixture
def admin_headers():
    return {"X-Admin-Password": ADMIN_PASSWORD}


@pytest.fixture
def root_headers():
    return {"X-Root-Password": ROOT_PASSWORD}
