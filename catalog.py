"""
Storefront reads: store configuration, categories and products.

The catalog is kept as raw dicts so keys the admin added to products.json
survive stock updates untouched.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from database import load_json, load_list, tenant_paths
from errors import NotFound

logger = logging.getLogger(__name__)

DEFAULT_STORE_CONFIG: Dict[str, Any] = {
    "storeName": "Demo Store",
    "primaryColor": "#222222",
    "accentColor": "#00ff88",
    "fontFamily": "system-ui, -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif",
    "heroText": "Welcome to our store!",
    "web3Domain": "",
    "logoPath": "/logo.svg",
    "shippingOptions": [],
    "paymentOptions": [],
    "theme": {
        "menuBg": "#111111",
        "menuText": "#ffffff",
        "menuActiveBg": "#f06292",
        "menuActiveText": "#ffffff",
        "buttonRadius": "4px",
    },
}

# never sent to storefront visitors
PRIVATE_CONFIG_KEYS = ("orderWebhookSecret", "orderWebhookUrl", "notificationEmail")


def default_store_config() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_STORE_CONFIG)


def load_config(tenant_id: str) -> Dict[str, Any]:
    config = load_json(tenant_paths(tenant_id).config, None)
    if not isinstance(config, dict):
        return default_store_config()
    return config


def public_config(config: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in config.items() if k not in PRIVATE_CONFIG_KEYS}


def load_products(tenant_id: str) -> List[Dict[str, Any]]:
    return [p for p in load_list(tenant_paths(tenant_id).products) if isinstance(p, dict)]


def load_categories(tenant_id: str) -> List[Dict[str, Any]]:
    return [c for c in load_list(tenant_paths(tenant_id).categories) if isinstance(c, dict)]


def list_products(tenant_id: str, category_slug: Optional[str] = None) -> List[Dict[str, Any]]:
    products = load_products(tenant_id)
    if not category_slug:
        return products
    category = next((c for c in load_categories(tenant_id) if c.get("slug") == category_slug), None)
    if category is None:
        return []
    return [p for p in products if p.get("categoryId") == category.get("id")]


def find_product(products: List[Dict[str, Any]], product_id: str) -> Optional[Dict[str, Any]]:
    return next((p for p in products if p.get("id") == product_id), None)


def find_variant(product: Dict[str, Any], variant_id: str) -> Optional[Dict[str, Any]]:
    variants = product.get("variants")
    if not isinstance(variants, list):
        return None
    return next((v for v in variants if isinstance(v, dict) and v.get("id") == variant_id), None)


def get_product(tenant_id: str, product_id: str) -> Dict[str, Any]:
    product = find_product(load_products(tenant_id), product_id)
    if product is None:
        raise NotFound("Product not found")
    return product
