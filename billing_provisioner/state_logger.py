"""Billing state change logging.

Records before/after values of every billing record write for auditing.
"""

from typing import Any, Optional

from billing_provisioner.logging_config import get_logger
from billing_provisioner.models import BillingRecord

logger = get_logger(__name__)


def log_billing_record_change(
    previous: Optional[BillingRecord],
    current: BillingRecord,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a billing record write.

    Args:
        previous: Record before the write, None on first write
        current: Record as written
        reason: Why the record changed
        **extra_context: Additional context
    """
    logger.info(
        "billing_record_changed",
        user_id=current.user_id,
        created=previous is None,
        old_status=previous.subscription_status if previous else None,
        new_status=current.subscription_status,
        old_subscription_id=previous.razorpay_subscription_id if previous else None,
        new_subscription_id=current.razorpay_subscription_id,
        customer_id=current.razorpay_customer_id,
        customer_reused=bool(previous and previous.razorpay_customer_id),
        reason=reason,
        **extra_context,
    )


def log_unrecognized_status(user_id: str, status: Optional[str], source: str) -> None:
    """Log a status string outside the known vocabulary.

    Args:
        user_id: User the status belongs to
        status: Raw status string
        source: Where it came from ("processor" or "store")
    """
    logger.warning(
        "unrecognized_subscription_status",
        user_id=user_id,
        status=status,
        source=source,
    )
