"""Shared fixtures: fake collaborators and token helpers."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import jwt
import pytest

from billing_provisioner.models import (
    AuthenticatedUser,
    BillingSettings,
    ProcessorCustomer,
    ProcessorPlan,
    ProcessorSubscription,
)
from billing_provisioner.repositories.billing_store import InMemoryBillingStore
from billing_provisioner.services.identity import IdentityError, IdentityProvider
from billing_provisioner.services.payment_processor import (
    PaymentProcessor,
    PaymentProcessorError,
)

FIXED_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


def make_token(**claims) -> str:
    """HS256 JWT with the given claims; the signature is never checked locally."""
    return jwt.encode(claims, "test-signing-secret-0123456789abcdef", algorithm="HS256")


class FakeIdentityProvider(IdentityProvider):
    """Resolves tokens from a dict; unknown tokens are invalid sessions."""

    def __init__(self):
        self.users: Dict[str, AuthenticatedUser] = {}
        self.calls: List[str] = []

    def register(self, token: str, user_id: str, email: str = "") -> None:
        self.users[token] = AuthenticatedUser(id=user_id, email=email)

    def get_user(self, token: str) -> AuthenticatedUser:
        self.calls.append(token)
        user = self.users.get(token)
        if user is None:
            raise IdentityError("invalid JWT: unable to parse or verify signature", status_code=401)
        return user


class FakePaymentProcessor(PaymentProcessor):
    """In-memory Razorpay stand-in that records every call."""

    def __init__(self):
        self.plans: Dict[str, ProcessorPlan] = {}
        self.customers: Dict[str, ProcessorCustomer] = {}
        self.subscriptions: Dict[str, ProcessorSubscription] = {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, PaymentProcessorError] = {}
        self.subscription_status: Optional[str] = "created"
        self.subscription_current_end: Optional[int] = None
        self.short_url: Optional[str] = "https://rzp.io/i/test123"

    def fail(self, operation: str, status_code: int = 400, status_text: str = "Bad Request",
             body: str = '{"error":{"code":"BAD_REQUEST_ERROR"}}') -> None:
        self.failures[operation] = PaymentProcessorError(status_code, status_text, body)

    def add_plan(self, plan_id: str) -> None:
        self.plans[plan_id] = ProcessorPlan(id=plan_id, period="monthly", interval=1)

    def add_customer(self, customer_id: str) -> None:
        self.customers[customer_id] = ProcessorCustomer(id=customer_id)

    def calls_to(self, operation: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == operation]

    def _check(self, operation: str) -> None:
        if operation in self.failures:
            raise self.failures[operation]

    def create_customer(self, name, notes):
        self.calls.append(("create_customer", name, dict(notes)))
        self._check("create_customer")
        customer = ProcessorCustomer(id=f"cust_{len(self.customers) + 1:04d}", name=name, notes=notes)
        self.customers[customer.id] = customer
        return customer

    def get_plan(self, plan_id):
        self.calls.append(("get_plan", plan_id))
        self._check("get_plan")
        if plan_id not in self.plans:
            raise PaymentProcessorError(400, "Bad Request", "The id provided does not exist")
        return self.plans[plan_id]

    def get_customer(self, customer_id):
        self.calls.append(("get_customer", customer_id))
        self._check("get_customer")
        if customer_id not in self.customers:
            raise PaymentProcessorError(400, "Bad Request", "The id provided does not exist")
        return self.customers[customer_id]

    def create_subscription(self, plan_id, customer_id, total_count, notes):
        self.calls.append(("create_subscription", plan_id, customer_id, total_count, dict(notes)))
        self._check("create_subscription")
        subscription = ProcessorSubscription(
            id=f"sub_{len(self.subscriptions) + 1:04d}",
            status=self.subscription_status,
            current_end=self.subscription_current_end,
            short_url=self.short_url,
            plan_id=plan_id,
            customer_id=customer_id,
        )
        self.subscriptions[subscription.id] = subscription
        return subscription


@pytest.fixture
def settings():
    """Fully configured settings."""
    return BillingSettings(
        supabase_url="https://project.supabase.co",
        anon_key="anon-key-value",
        service_role_key="service-role-key-value",
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret="rzp_test_secret",
        razorpay_plan_id="plan_basic",
    )


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def processor():
    fake = FakePaymentProcessor()
    fake.add_plan("plan_basic")
    return fake


@pytest.fixture
def billing_store():
    store = InMemoryBillingStore()
    yield store
    store.clear()


@pytest.fixture
def user_token(identity):
    """Valid session token for user u1."""
    token = make_token(sub="u1", role="authenticated", email="u1@example.com")
    identity.register(token, "u1", "u1@example.com")
    return token


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def token_factory():
    """Build unsigned-for-our-purposes JWTs with arbitrary claims."""
    return make_token


@pytest.fixture
def fixed_now():
    return FIXED_NOW
