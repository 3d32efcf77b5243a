"""
Tenant registry and host-based tenant resolution.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple

from pydantic import ValidationError

from auth import DEFAULT_TIER, SUPPORT_TIERS, hash_password
from catalog import default_store_config
from database import TENANT_ID_PATTERN, load_json, load_list, lock_for, registry_path, save_json, tenant_paths
from errors import InvalidTenantId, NotFound, ValidationFailed
from schemas import ReferralConfig, Tenant

logger = logging.getLogger(__name__)

REGISTRY_LOCK = "__registry__"
DEFAULT_TEMPLATE_ID = "demo"


def read_entries() -> List[Any]:
    """
    Registry entries as Tenant models. Entries that don't validate are kept
    as their raw JSON so a later save writes them back unchanged.
    """
    entries: List[Any] = []
    for raw in load_list(registry_path()):
        try:
            entries.append(Tenant.model_validate(raw))
        except ValidationError as exc:
            logger.warning("Malformed registry entry %r is ignored but kept on disk: %s", raw, exc)
            entries.append(raw)
    return entries


def load_registry() -> List[Tenant]:
    return [e for e in read_entries() if isinstance(e, Tenant)]


def save_registry(entries: List[Any]) -> None:
    save_json(registry_path(), [e.dump() if isinstance(e, Tenant) else e for e in entries])


def _entry_id(entry: Any) -> Any:
    if isinstance(entry, Tenant):
        return entry.id
    return entry.get("id") if isinstance(entry, dict) else None


def find_tenant(tenant_id: str) -> Optional[Tenant]:
    return next((t for t in load_registry() if t.id == tenant_id), None)


def normalize_host(host: Optional[str]) -> str:
    """Lowercase host without its port. IPv6 literals keep their brackets."""
    host = (host or "").strip().lower()
    if host.startswith("["):
        return host.split("]")[0] + "]"
    if host.count(":") == 1:
        return host.rsplit(":", 1)[0]
    return host


Rule = Tuple[str, Callable[[Tenant, str, str], bool]]

# Evaluated in order over the whole registry; the first rule with a match wins.
RESOLUTION_ORDER: List[Rule] = [
    ("domain", lambda t, host, default_id: bool(t.domain) and t.domain.strip().lower() == host),
    ("default", lambda t, host, default_id: t.id == default_id),
    ("active", lambda t, host, default_id: t.active),
    ("first", lambda t, host, default_id: True),
]


def resolve_tenant(tenants: List[Tenant], host: Optional[str], default_id: str) -> Optional[Tenant]:
    """
    Map a Host header to a tenant. Any host resolves to some tenant as long as
    the registry is non-empty, so an unknown domain silently serves a real
    store. Only an empty registry yields None. Tenants whose id can't name a
    data directory are never served.
    """
    wanted = normalize_host(host)
    invalid = [t.id for t in tenants if not TENANT_ID_PATTERN.match(t.id)]
    if invalid:
        logger.warning("Ignoring tenants with invalid ids: %s", invalid)
        tenants = [t for t in tenants if t.id not in invalid]
    for rule, matches in RESOLUTION_ORDER:
        tenant = next((t for t in tenants if matches(t, wanted, default_id)), None)
        if tenant is None:
            continue
        if rule != "domain":
            logger.warning("Host %r matched no tenant domain, falling back to %s (%s rule)", wanted, tenant.id, rule)
        return tenant
    return None


# ============ Root operations ============
def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def seed_tenant_files(tenant_id: str, template_id: str = DEFAULT_TEMPLATE_ID) -> None:
    new_paths = tenant_paths(tenant_id)
    try:
        tpl_paths = tenant_paths(template_id)
    except InvalidTenantId:
        tpl_paths = tenant_paths(DEFAULT_TEMPLATE_ID)

    if not new_paths.config.exists():
        config = load_json(tpl_paths.config, None)
        if not isinstance(config, dict):
            config = default_store_config()
        config["storeName"] = tenant_id
        save_json(new_paths.config, config)
    if not new_paths.products.exists():
        save_json(new_paths.products, load_list(tpl_paths.products))
    if not new_paths.categories.exists():
        save_json(new_paths.categories, load_list(tpl_paths.categories))


def create_tenant(
    tenant_id: str,
    domain: str = "",
    support_tier: Optional[str] = None,
    admin_password: str = "",
    template_id: Optional[str] = None,
) -> Tenant:
    clean_id = (tenant_id or "").strip()
    if not clean_id or not TENANT_ID_PATTERN.match(clean_id):
        raise ValidationFailed("Tenant id is required and may only contain a-z, 0-9, _ and -")
    if not admin_password:
        raise ValidationFailed("Admin password is required")

    with lock_for(REGISTRY_LOCK):
        tenants = read_entries()
        if any(_entry_id(e) == clean_id for e in tenants):
            raise ValidationFailed(f'Tenant "{clean_id}" already exists')

        tenant = Tenant(
            id=clean_id,
            domain=(domain or "").strip(),
            support_tier=support_tier if support_tier in SUPPORT_TIERS else DEFAULT_TIER,
            admin_password_hash=hash_password(admin_password),
            created_at=_now(),
            active=True,
        )
        seed_tenant_files(clean_id, (template_id or "").strip() or DEFAULT_TEMPLATE_ID)
        tenants.append(tenant)
        save_registry(tenants)

    logger.info("Created tenant %s (%s)", clean_id, tenant.support_tier)
    return tenant


def _replace(tenants: List[Any], tenant_id: str, **changes) -> Tenant:
    for idx, tenant in enumerate(tenants):
        if isinstance(tenant, Tenant) and tenant.id == tenant_id:
            tenants[idx] = tenant.model_copy(update=changes)
            return tenants[idx]
    raise NotFound(f'Tenant "{tenant_id}" not found')


def update_tenant(
    tenant_id: str,
    domain: Optional[str] = None,
    support_tier: Optional[str] = None,
    active: Optional[bool] = None,
    referral: Optional[ReferralConfig] = None,
    clear_referral: bool = False,
) -> Tenant:
    changes = {}
    if domain is not None:
        changes["domain"] = domain.strip()
    if support_tier and support_tier in SUPPORT_TIERS:
        changes["support_tier"] = support_tier
    if active is not None:
        changes["active"] = active
    if referral is not None:
        changes["referral"] = referral
    elif clear_referral:
        changes["referral"] = None

    with lock_for(REGISTRY_LOCK):
        tenants = read_entries()
        tenant = _replace(tenants, tenant_id, **changes)
        save_registry(tenants)

    logger.info("Updated tenant %s: %s", tenant_id, sorted(changes))
    return tenant


def reset_admin_password(tenant_id: str, new_password: str) -> Tenant:
    if not new_password:
        raise ValidationFailed("New password is required")
    with lock_for(REGISTRY_LOCK):
        tenants = read_entries()
        tenant = _replace(tenants, tenant_id, admin_password_hash=hash_password(new_password))
        save_registry(tenants)
    logger.info("Reset admin password for tenant %s", tenant_id)
    return tenant
