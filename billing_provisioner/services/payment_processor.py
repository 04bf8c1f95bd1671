"""Payment processor client - the four Razorpay calls the workflow needs.

Implements:
- POST /v1/customers            create customer
- GET  /v1/plans/{id}           fetch plan
- GET  /v1/customers/{id}       fetch customer
- POST /v1/subscriptions        create subscription

Every failure raises PaymentProcessorError carrying the upstream status, status
text and raw body, so callers can pass them back verbatim.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from billing_provisioner.logging_config import get_logger
from billing_provisioner.models import (
    ProcessorCustomer,
    ProcessorPlan,
    ProcessorSubscription,
)

logger = get_logger(__name__)


class PaymentProcessorError(Exception):
    """Raised when a processor call does not succeed."""

    def __init__(self, status_code: int, status_text: str, body: str):
        self.status_code = status_code
        self.status_text = status_text
        self.body = body
        super().__init__(f"Payment processor returned {status_code} {status_text}: {body}")

    def to_details(self) -> Dict[str, Any]:
        return {"status": self.status_code, "statusText": self.status_text, "body": self.body}


class PaymentProcessor:
    """Narrow interface over the payment processor.

    The workflow depends only on this class, so tests can substitute a fake.
    """

    def create_customer(self, name: str, notes: Dict[str, str]) -> ProcessorCustomer:
        raise NotImplementedError

    def get_plan(self, plan_id: str) -> ProcessorPlan:
        raise NotImplementedError

    def get_customer(self, customer_id: str) -> ProcessorCustomer:
        raise NotImplementedError

    def create_subscription(
        self,
        plan_id: str,
        customer_id: str,
        total_count: int,
        notes: Dict[str, str],
    ) -> ProcessorSubscription:
        raise NotImplementedError

    def close(self) -> None:
        """Release any held connections."""


class RazorpayClient(PaymentProcessor):
    """Razorpay REST client using HTTP basic auth with the key id and secret."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("razorpay_timeout", method=method, path=path, error=str(exc))
            raise PaymentProcessorError(504, "Gateway Timeout", "Razorpay request timed out")
        except httpx.RequestError as exc:
            logger.error("razorpay_unreachable", method=method, path=path, error=str(exc))
            raise PaymentProcessorError(502, "Bad Gateway", f"Cannot reach Razorpay: {exc}")

        if response.is_error:
            logger.warning(
                "razorpay_error_response",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise PaymentProcessorError(response.status_code, response.reason_phrase, response.text)

        try:
            body = response.json()
        except ValueError:
            raise PaymentProcessorError(
                response.status_code, response.reason_phrase, response.text
            )
        if not isinstance(body, dict):
            raise PaymentProcessorError(response.status_code, response.reason_phrase, response.text)
        return body

    def _parse(self, model: Any, body: Dict[str, Any]) -> Any:
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise PaymentProcessorError(200, "OK", f"Unexpected Razorpay response: {exc}")

    def create_customer(self, name: str, notes: Dict[str, str]) -> ProcessorCustomer:
        body = self._request("POST", "/v1/customers", json={"name": name, "notes": notes})
        return self._parse(ProcessorCustomer, body)

    def get_plan(self, plan_id: str) -> ProcessorPlan:
        body = self._request("GET", f"/v1/plans/{quote(plan_id, safe='')}")
        return self._parse(ProcessorPlan, body)

    def get_customer(self, customer_id: str) -> ProcessorCustomer:
        body = self._request("GET", f"/v1/customers/{quote(customer_id, safe='')}")
        return self._parse(ProcessorCustomer, body)

    def create_subscription(
        self,
        plan_id: str,
        customer_id: str,
        total_count: int,
        notes: Dict[str, str],
    ) -> ProcessorSubscription:
        body = self._request(
            "POST",
            "/v1/subscriptions",
            json={
                "plan_id": plan_id,
                "customer_id": customer_id,
                "total_count": total_count,
                "notes": notes,
            },
        )
        return self._parse(ProcessorSubscription, body)

    def close(self) -> None:
        self._client.close()
