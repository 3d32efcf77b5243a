"""
Flat-file JSON storage.

Layout under the data root:

    tenants.json                   registry of all tenants
    referrals.json                 referral accounts
    referral_earnings.json         referral earnings ledger
    tenants/<id>/config.json       store configuration
    tenants/<id>/products.json     catalog
    tenants/<id>/categories.json
    tenants/<id>/orders.json
    tenants/<id>/reviews.json
    tenants/<id>/stock_log.json
    tenants/<id>/analytics.json
    tenants/<id>/media/            uploaded media

Every mutation is a whole-file read, in-memory change and whole-file write.
Callers hold ``lock_for(key)`` around the cycle so two requests in this
process cannot interleave on the same file.
"""

import json
import logging
import os
import re
import shutil
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from config import EMBEDDED_DATA_ROOT, settings
from errors import InvalidTenantId

logger = logging.getLogger(__name__)

REGISTRY_FILE = "tenants.json"
TENANT_ID_PATTERN = re.compile(r"^[a-z0-9_-]+$", re.IGNORECASE)

_locks: Dict[str, threading.RLock] = {}
_locks_guard = threading.Lock()


def lock_for(key: str) -> threading.RLock:
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.RLock()
        return lock


def data_root() -> Path:
    return Path(settings.data_root)


def registry_path() -> Path:
    return data_root() / REGISTRY_FILE


@dataclass(frozen=True)
class TenantPaths:
    base: Path
    config: Path
    products: Path
    categories: Path
    orders: Path
    reviews: Path
    stock_log: Path
    analytics: Path
    media: Path


def tenant_paths(tenant_id: str) -> TenantPaths:
    if not TENANT_ID_PATTERN.match(tenant_id or ""):
        raise InvalidTenantId(f"Invalid tenant id: {tenant_id!r}")
    base = data_root() / "tenants" / tenant_id
    media = base / "media"
    media.mkdir(parents=True, exist_ok=True)
    return TenantPaths(
        base=base,
        config=base / "config.json",
        products=base / "products.json",
        categories=base / "categories.json",
        orders=base / "orders.json",
        reviews=base / "reviews.json",
        stock_log=base / "stock_log.json",
        analytics=base / "analytics.json",
        media=media,
    )


def load_json(path: Path, fallback: Any) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return fallback
    except (OSError, ValueError) as exc:
        logger.warning("Could not load %s: %s", path, exc)
        return fallback


def load_list(path: Path) -> List[Any]:
    """Load a JSON array; anything else is treated as an empty list."""
    data = load_json(path, [])
    if not isinstance(data, list):
        logger.warning("Malformed %s (not an array), treating as empty", path)
        return []
    return data


def save_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def copy_missing(src: Path, dest: Path) -> int:
    """Copy the tree at ``src`` into ``dest`` without overwriting anything."""
    copied = 0
    dest.mkdir(parents=True, exist_ok=True)
    for entry in src.iterdir():
        target = dest / entry.name
        if entry.is_dir():
            copied += copy_missing(entry, target)
        elif entry.is_file() and not target.exists():
            shutil.copy2(entry, target)
            copied += 1
    return copied


def init_data_root() -> Path:
    root = data_root()
    root.mkdir(parents=True, exist_ok=True)
    if not registry_path().exists() and root.resolve() != EMBEDDED_DATA_ROOT.resolve():
        if EMBEDDED_DATA_ROOT.is_dir():
            copied = copy_missing(EMBEDDED_DATA_ROOT, root)
            logger.warning("%s had no %s, seeded %d files from %s", root, REGISTRY_FILE, copied, EMBEDDED_DATA_ROOT)
    (root / "tenants").mkdir(exist_ok=True)
    logger.info("Using data root %s", root)
    return root
