"""
Best-effort side effects of a placed order: external attestation, the
order webhook and notification emails.

These run after the order is persisted (FastAPI background task). Failures
are logged and never reach the buyer.
"""

import hashlib
import hmac
import json
import logging
import smtplib
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

import requests

from config import settings
from schemas import Order

logger = logging.getLogger(__name__)


def attestation_payload(order: Order) -> Dict[str, Any]:
    return {
        "orderId": order.id,
        "total": str(order.total),
        "timestamp": order.created_at,
        "customerEmail": order.email,
        "wallet": order.wallet or None,
        "tenantId": order.tenant_id,
    }


def attest_order(order: Order) -> bool:
    base_url = (settings.attestation_url or "").rstrip("/")
    if not base_url:
        logger.info("ATTESTATION_URL not set, skipping attestation of order %s (hash %s)", order.id, order.proof_hash)
        return False
    body = dict(attestation_payload(order), hash=order.proof_hash, apiKey=settings.attestation_api_key)
    response = requests.post(f"{base_url}/api/commerce/attest", json=body, timeout=settings.http_timeout)
    response.raise_for_status()
    logger.info("Attested order %s: HTTP %s", order.id, response.status_code)
    return True


def sign_body(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def send_order_webhook(order: Order, url: Optional[str], secret: Optional[str] = None) -> bool:
    if not url:
        return False
    body = json.dumps({"event": "order.created", "data": order.dump()}).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if secret:
        headers["X-Signature"] = sign_body(body, secret)
    response = requests.post(url, data=body, headers=headers, timeout=settings.http_timeout)
    response.raise_for_status()
    return True


def _order_summary(order: Order, store_name: str) -> str:
    lines = [f"{store_name} order {order.id}", ""]
    for line in order.items:
        label = f" ({line.label})" if line.label else ""
        lines.append(f"{line.qty} x {line.name}{label} @ {line.unit_price}")
    lines += [
        "",
        f"Subtotal: {order.subtotal:.2f}",
        f"Shipping ({order.shipping_method_label}): {order.shipping_cost:.2f}",
    ]
    if order.cod_fee:
        lines.append(f"Cash on delivery fee: {order.cod_fee:.2f}")
    if order.gateway_fee:
        lines.append(f"Payment fee: {order.gateway_fee:.2f}")
    lines += [f"Total: {order.total:.2f}", "", f"Proof hash: {order.proof_hash}"]
    return "\n".join(lines)


def send_email(to: str, subject: str, text: str) -> bool:
    if not settings.smtp_host or not to:
        return False
    message = MIMEText(text)
    message["Subject"] = subject
    message["From"] = settings.mail_from
    message["To"] = to
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.http_timeout) as smtp:
        smtp.starttls()
        if settings.smtp_user and settings.smtp_pass:
            smtp.login(settings.smtp_user, settings.smtp_pass)
        smtp.send_message(message)
    return True


def send_order_emails(order: Order, config: Dict[str, Any]) -> int:
    store_name = str(config.get("storeName") or order.tenant_id)
    summary = _order_summary(order, store_name)
    sent = 0
    if send_email(order.email, f"[{store_name}] Order {order.id} received", summary):
        sent += 1
    if send_email(config.get("notificationEmail") or "", f"[{store_name}] New order {order.id}", summary):
        sent += 1
    return sent


def dispatch_order_side_effects(order: Order, config: Dict[str, Any]) -> None:
    try:
        attest_order(order)
    except Exception as exc:
        logger.warning("Attestation of order %s failed: %s", order.id, exc)
    try:
        send_order_webhook(order, config.get("orderWebhookUrl"), config.get("orderWebhookSecret"))
    except Exception as exc:
        logger.warning("Order webhook for %s failed: %s", order.id, exc)
    try:
        send_order_emails(order, config)
    except Exception as exc:
        logger.warning("Order email for %s failed: %s", order.id, exc)
