"""Billing store - read and upsert billing records by user id.

Two implementations:
- SupabaseBillingStore: the user_billing table through the PostgREST API,
  authenticated with the service-role key
- InMemoryBillingStore: thread-safe dictionary, for local runs and tests
"""

import threading
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from billing_provisioner.logging_config import get_logger
from billing_provisioner.models import BillingRecord

logger = get_logger(__name__)

BILLING_COLUMNS = (
    "user_id",
    "razorpay_customer_id",
    "razorpay_subscription_id",
    "subscription_status",
    "trial_ends_at",
    "current_period_end",
    "updated_at",
)


class BillingStoreError(Exception):
    """Raised when the billing store cannot be read or written."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class BillingStore:
    """Interface for billing record persistence."""

    def find_by_user(self, user_id: str) -> Optional[BillingRecord]:
        """Return the user's billing record, or None if there is none.

        Raises:
            BillingStoreError: If the lookup fails
        """
        raise NotImplementedError

    def upsert(self, record: BillingRecord) -> None:
        """Insert the record, or replace every column of the existing one.

        Raises:
            BillingStoreError: If the write fails
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release any held connections."""


class InMemoryBillingStore(BillingStore):
    """In-memory billing records keyed by user id.

    Stored records are copies, so callers mutating a record they hold do not
    change the store.
    """

    def __init__(self):
        self._records: Dict[str, BillingRecord] = {}
        self._lock = threading.RLock()

    def find_by_user(self, user_id: str) -> Optional[BillingRecord]:
        with self._lock:
            record = self._records.get(user_id)
            return record.model_copy() if record is not None else None

    def upsert(self, record: BillingRecord) -> None:
        with self._lock:
            self._records[record.user_id] = record.model_copy()

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        """Remove every record."""
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._records

    def __repr__(self) -> str:
        return f"InMemoryBillingStore(records={self.count()})"


def _postgrest_message(response: httpx.Response) -> str:
    """Extract the error message PostgREST puts in its JSON error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"{response.status_code} {response.reason_phrase}"
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return response.text


class SupabaseBillingStore(BillingStore):
    """Billing table accessed through Supabase's PostgREST endpoint.

    Uses the service-role key, which bypasses row level security; the caller's
    own token is never used here.
    """

    def __init__(
        self,
        supabase_url: str,
        service_role_key: str,
        table: str = "user_billing",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the store.

        Args:
            supabase_url: Project URL, e.g. https://abc.supabase.co
            service_role_key: Privileged API key
            table: Billing table name
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self._table = table
        self._client = httpx.Client(
            base_url=f"{supabase_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": service_role_key,
                "Authorization": f"Bearer {service_role_key}",
            },
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, f"/{self._table}", **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("billing_store_timeout", method=method, table=self._table, error=str(exc))
            raise BillingStoreError("Billing store request timed out")
        except httpx.RequestError as exc:
            logger.error("billing_store_unreachable", method=method, table=self._table, error=str(exc))
            raise BillingStoreError(f"Billing store is unreachable: {exc}")

        if response.is_error:
            message = _postgrest_message(response)
            logger.error(
                "billing_store_error",
                method=method,
                table=self._table,
                status_code=response.status_code,
                message=message,
            )
            raise BillingStoreError(message, status_code=response.status_code)
        return response

    def find_by_user(self, user_id: str) -> Optional[BillingRecord]:
        response = self._request(
            "GET",
            params={
                "select": ",".join(BILLING_COLUMNS),
                "user_id": f"eq.{user_id}",
                "limit": "2",
            },
        )
        try:
            rows = response.json()
        except ValueError:
            raise BillingStoreError("Unexpected billing store response")
        if not isinstance(rows, list):
            raise BillingStoreError("Unexpected billing store response")
        if len(rows) > 1:
            raise BillingStoreError(
                "JSON object requested, multiple (or no) rows returned"
            )
        if not rows:
            return None
        try:
            return BillingRecord.model_validate(rows[0])
        except ValidationError as exc:
            raise BillingStoreError(f"Malformed billing record: {exc}")

    def upsert(self, record: BillingRecord) -> None:
        self._request(
            "POST",
            params={"on_conflict": "user_id"},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            json=record.to_row(),
        )

    def close(self) -> None:
        self._client.close()


# Global in-memory store for the "memory" backend
_store_instance: Optional[InMemoryBillingStore] = None
_store_lock = threading.Lock()


def get_memory_billing_store() -> InMemoryBillingStore:
    """Get the process-wide in-memory store (singleton)."""
    global _store_instance
    if _store_instance is None:
        with _store_lock:
            if _store_instance is None:
                _store_instance = InMemoryBillingStore()
    return _store_instance


def reset_memory_billing_store() -> None:
    """Clear the process-wide in-memory store."""
    get_memory_billing_store().clear()
