"""
Admin / root authentication and support-tier permissions.
"""

import hmac
import logging
from typing import Dict, Optional

import bcrypt

from config import settings
from errors import Forbidden, Unauthorized
from schemas import Tenant

logger = logging.getLogger(__name__)

DEFAULT_TIER = "SELF_SERVICE"

_ALL_EDITS = {
    "canEditSettings": True,
    "canEditProducts": True,
    "canUploadMedia": True,
    "canEditCategories": True,
}

SUPPORT_TIERS: Dict[str, Dict[str, bool]] = {
    "SELF_SERVICE": dict(_ALL_EDITS),
    "MANAGEMENT_START": dict(_ALL_EDITS),
    # the ops team edits the store on the tenant's behalf
    "FULL_OPS_START": {key: False for key in _ALL_EDITS},
}


def permissions_for(support_tier: Optional[str]) -> Dict[str, bool]:
    return dict(SUPPORT_TIERS.get(support_tier or "", SUPPORT_TIERS[DEFAULT_TIER]))


def hash_password(plain: str) -> str:
    rounds = max(4, min(int(settings.bcrypt_rounds), 31))
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_admin_password(tenant: Tenant, plain: Optional[str]) -> bool:
    if not tenant.admin_password_hash:
        return False
    try:
        return bcrypt.checkpw((plain or "").encode("utf-8"), tenant.admin_password_hash.encode("ascii"))
    except ValueError:
        logger.warning("Tenant %s has an unreadable admin password hash", tenant.id)
        return False


def verify_root_password(plain: Optional[str]) -> bool:
    expected = settings.root_admin_password
    if not expected:
        return False
    return hmac.compare_digest((plain or "").encode("utf-8"), expected.encode("utf-8"))


def require_admin(tenant: Tenant, password: Optional[str], permission: Optional[str] = None) -> None:
    """Tier permission is checked before the password."""
    if permission and not permissions_for(tenant.support_tier).get(permission, False):
        raise Forbidden(f"Support tier {tenant.support_tier} does not allow this action")
    if not verify_admin_password(tenant, password):
        raise Unauthorized("Invalid admin password")


def require_root(password: Optional[str]) -> None:
    if not verify_root_password(password):
        raise Unauthorized("Invalid root password")
