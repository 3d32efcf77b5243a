"""
Referral commissions.

A paid event for a tenant with a referral config accrues a pending earning
and bumps the account's running ``earnedFiat``; paying earnings out bumps
``paidFiat``. The totals are maintained incrementally and never recomputed
from the earnings ledger (``ledger_totals`` only reports the ledger sums).
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from database import data_root, load_list, lock_for, save_json
from schemas import PaymentEvent, ReferralAccount, ReferralEarning
from tenancy import find_tenant

logger = logging.getLogger(__name__)

REFERRALS_LOCK = "__referrals__"
CENT = Decimal("0.01")


def accounts_path():
    return data_root() / "referrals.json"


def earnings_path():
    return data_root() / "referral_earnings.json"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def list_accounts() -> List[ReferralAccount]:
    return [ReferralAccount.model_validate(a) for a in load_list(accounts_path()) if isinstance(a, dict)]


def list_earnings(ref_code: Optional[str] = None, status: Optional[str] = None) -> List[ReferralEarning]:
    earnings = [ReferralEarning.model_validate(e) for e in load_list(earnings_path()) if isinstance(e, dict)]
    if ref_code:
        earnings = [e for e in earnings if e.ref_code == ref_code]
    if status:
        earnings = [e for e in earnings if e.status == status]
    return earnings


def _save_accounts(accounts: Iterable[ReferralAccount]) -> None:
    save_json(accounts_path(), [a.dump() for a in accounts])


def _save_earnings(earnings: Iterable[ReferralEarning]) -> None:
    save_json(earnings_path(), [e.dump() for e in earnings])


def commission_for(amount: Decimal, percent: Decimal) -> Decimal:
    return (amount * percent).quantize(CENT, rounding=ROUND_HALF_UP)


def accrue_commission(event: PaymentEvent) -> Optional[ReferralEarning]:
    tenant = find_tenant(event.tenant_id)
    if tenant is None or tenant.referral is None:
        return None
    code, percent = tenant.referral.code, tenant.referral.percent
    if percent <= 0 or event.amount <= 0:
        return None

    amount = commission_for(event.amount, percent)
    with lock_for(REFERRALS_LOCK):
        earnings = list_earnings()
        if event.id and any(e.event_id == event.id for e in earnings):
            logger.info("Payment event %s already accrued, ignoring", event.id)
            return None

        accounts = list_accounts()
        account = next((a for a in accounts if a.code == code), None)
        if account is None:
            account = ReferralAccount(code=code, percent=percent)
            accounts.append(account)
        account.percent = percent

        earning = ReferralEarning(
            id=uuid.uuid4().hex[:12],
            tenant_id=tenant.id,
            ref_code=code,
            amount_fiat=amount,
            currency=event.currency,
            status="pending",
            event_id=event.id,
            order_id=event.order_id,
            created_at=_now(),
        )
        earnings.append(earning)
        _save_earnings(earnings)

        account.totals.earned_fiat += amount
        if tenant.id not in account.tenants:
            account.tenants.append(tenant.id)
        _save_accounts(accounts)

    logger.info("Referral %s earned %s from tenant %s (%s x %s)", code, amount, tenant.id, event.amount, percent)
    return earning


def mark_paid(
    earning_ids: Optional[Iterable[str]] = None,
    ref_code: Optional[str] = None,
    payment_ref: Optional[str] = None,
) -> List[ReferralEarning]:
    """Pay out the given earnings, or every pending earning of ``ref_code``."""
    wanted = set(earning_ids or [])
    if not wanted and not ref_code:
        return []

    paid: List[ReferralEarning] = []
    with lock_for(REFERRALS_LOCK):
        earnings = list_earnings()
        for earning in earnings:
            if earning.status != "pending":
                continue
            if wanted and earning.id not in wanted:
                continue
            if ref_code and earning.ref_code != ref_code:
                continue
            earning.status = "paid"
            earning.paid_at = _now()
            earning.payment_ref = payment_ref
            paid.append(earning)
        if not paid:
            return []
        _save_earnings(earnings)

        accounts = list_accounts()
        by_code: Dict[str, ReferralAccount] = {a.code: a for a in accounts}
        for earning in paid:
            account = by_code.get(earning.ref_code)
            if account is None:
                account = by_code[earning.ref_code] = ReferralAccount(code=earning.ref_code)
                accounts.append(account)
            account.totals.paid_fiat += earning.amount_fiat
        _save_accounts(accounts)

    logger.info("Marked %d referral earnings paid (ref %s)", len(paid), payment_ref or "-")
    return paid


def ledger_totals(ref_code: str) -> Dict[str, Decimal]:
    earnings = list_earnings(ref_code=ref_code)
    return {
        "earnedFiat": sum((e.amount_fiat for e in earnings), Decimal("0")),
        "paidFiat": sum((e.amount_fiat for e in earnings if e.status == "paid"), Decimal("0")),
    }
