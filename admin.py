"""
Store admin mutations: settings, shipping/payment options, categories and
the product catalog.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from catalog import load_categories, load_config
from database import lock_for, save_json, tenant_paths
from errors import NotFound, ValidationFailed
from schemas import Category, Product, SettingsUpdate, ShippingPaymentUpdate

logger = logging.getLogger(__name__)

_SETTINGS_FIELDS = {
    "store_name": "storeName",
    "primary_color": "primaryColor",
    "accent_color": "accentColor",
    "font_family": "fontFamily",
    "hero_text": "heroText",
    "web3_domain": "web3Domain",
    "logo_path": "logoPath",
}

_THEME_FIELDS = {
    "theme_menu_bg": ("menuBg", "#111111"),
    "theme_menu_text": ("menuText", "#ffffff"),
    "theme_menu_active_bg": ("menuActiveBg", "#f06292"),
    "theme_menu_active_text": ("menuActiveText", "#ffffff"),
    "theme_button_radius": ("buttonRadius", "4px"),
}


def update_settings(tenant_id: str, update: SettingsUpdate) -> Dict[str, Any]:
    """Blank values keep what the store already has."""
    with lock_for(tenant_id):
        config = load_config(tenant_id)
        for attr, key in _SETTINGS_FIELDS.items():
            value = getattr(update, attr)
            if value:
                config[key] = value
        theme = config.get("theme")
        if not isinstance(theme, dict):
            theme = config["theme"] = {}
        for attr, (key, default) in _THEME_FIELDS.items():
            theme[key] = getattr(update, attr) or theme.get(key) or default
        save_json(tenant_paths(tenant_id).config, config)
    logger.info("Tenant %s updated store settings", tenant_id)
    return config


def update_shipping_payment(tenant_id: str, update: ShippingPaymentUpdate) -> Dict[str, Any]:
    """Edits labels and amounts only; ids and payment allow-lists are left alone."""
    with lock_for(tenant_id):
        config = load_config(tenant_id)
        shipping = {o.get("id"): o for o in config.get("shippingOptions") or [] if isinstance(o, dict)}
        payment = {o.get("id"): o for o in config.get("paymentOptions") or [] if isinstance(o, dict)}

        for change in update.shipping_options:
            option = shipping.get(change.id)
            if option is None:
                raise NotFound(f"Unknown shipping option {change.id}")
            if change.label is not None:
                option["label"] = change.label
            if change.base is not None:
                option["base"] = float(change.base)
            if change.cod_fee is not None:
                option["codFee"] = float(change.cod_fee)

        for change in update.payment_options:
            option = payment.get(change.id)
            if option is None:
                raise NotFound(f"Unknown payment option {change.id}")
            if change.label is not None:
                option["label"] = change.label
            if change.gateway_surcharge_percent is not None:
                option["gatewaySurchargePercent"] = float(change.gateway_surcharge_percent)

        save_json(tenant_paths(tenant_id).config, config)
    logger.info("Tenant %s updated shipping/payment options", tenant_id)
    return config


# ============ Categories ============
def add_category(tenant_id: str, category: Category) -> List[Dict[str, Any]]:
    with lock_for(tenant_id):
        categories = load_categories(tenant_id)
        if any(c.get("id") == category.id or c.get("slug") == category.slug for c in categories):
            raise ValidationFailed("A category with this id or slug already exists")
        categories.append(category.dump())
        save_json(tenant_paths(tenant_id).categories, categories)
    return categories


def update_category(tenant_id: str, category_id: str, name: Optional[str] = None, slug: Optional[str] = None) -> List[Dict[str, Any]]:
    with lock_for(tenant_id):
        categories = load_categories(tenant_id)
        target = next((c for c in categories if c.get("id") == category_id), None)
        if target is None:
            raise NotFound("Category not found")
        if slug and any(c.get("id") != category_id and c.get("slug") == slug for c in categories):
            raise ValidationFailed("Slug is already used by another category")
        target["name"] = name or target.get("name")
        target["slug"] = slug or target.get("slug")
        save_json(tenant_paths(tenant_id).categories, categories)
    return categories


def delete_category(tenant_id: str, category_id: str) -> List[Dict[str, Any]]:
    with lock_for(tenant_id):
        categories = [c for c in load_categories(tenant_id) if c.get("id") != category_id]
        save_json(tenant_paths(tenant_id).categories, categories)
    return categories


# ============ Catalog ============
def parse_products(products_json: str) -> List[Dict[str, Any]]:
    try:
        parsed = json.loads(products_json)
    except ValueError as exc:
        raise ValidationFailed(f"Products JSON is malformed: {exc}")
    if not isinstance(parsed, list):
        raise ValidationFailed("Products JSON must be an array")
    seen = set()
    for raw in parsed:
        try:
            product = Product.model_validate(raw)
        except ValidationError as exc:
            raise ValidationFailed(f"Invalid product: {exc.errors()[0]['msg']}")
        if product.id in seen:
            raise ValidationFailed(f"Duplicate product id {product.id}")
        seen.add(product.id)
    return parsed


def replace_products(tenant_id: str, products_json: str) -> List[Dict[str, Any]]:
    products = parse_products(products_json)
    with lock_for(tenant_id):
        save_json(tenant_paths(tenant_id).products, products)
    logger.info("Tenant %s replaced catalog (%d products)", tenant_id, len(products))
    return products
