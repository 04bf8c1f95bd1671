"""Subscription provisioning - creates a recurring Razorpay subscription for the caller.

Stages run strictly in order and the first failure ends the request:

1. check configuration
2. authenticate the bearer token
3. load the caller's billing record, reject if already active
4. reuse the stored customer id or create a customer
5. confirm the plan id and customer id exist for these keys/mode
6. create the subscription
7. upsert the billing record

Nothing is rolled back. A customer or subscription created before a later
failure stays at Razorpay. Because the customer id is only persisted in stage
7, a retry after a failure in stages 5-7 of a first attempt creates another
customer; a retry after a successful write reuses it.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from billing_provisioner.logging_config import bind_context, get_logger
from billing_provisioner.models import (
    AuthenticatedUser,
    BillingRecord,
    BillingSettings,
    ErrorResponse,
    ProcessorSubscription,
    SubscriptionStatus,
)
from billing_provisioner.repositories.billing_store import (
    BillingStore,
    BillingStoreError,
    SupabaseBillingStore,
    get_memory_billing_store,
)
from billing_provisioner.services.identity import (
    IdentityError,
    IdentityProvider,
    SupabaseIdentityClient,
)
from billing_provisioner.services.payment_processor import (
    PaymentProcessor,
    PaymentProcessorError,
    RazorpayClient,
)
from billing_provisioner.state_logger import log_billing_record_change, log_unrecognized_status
from billing_provisioner.utils.bearer_token import (
    decode_token_claims,
    describe_missing_subject,
    extract_bearer_token,
)

logger = get_logger(__name__)

DEFAULT_STATUS = SubscriptionStatus.CREATED.value


class ProvisioningError(Exception):
    """Base exception for workflow failures; carries the HTTP status and body."""

    status_code = 500

    def __init__(
        self,
        message: str,
        details: Any = None,
        debug: Optional[Dict[str, Any]] = None,
        plan_id: Optional[str] = None,
        customer_id: Optional[str] = None,
    ):
        self.message = message
        self.details = details
        self.debug = debug
        self.plan_id = plan_id
        self.customer_id = customer_id
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.message,
            details=self.details,
            debug=self.debug,
            plan_id=self.plan_id,
            customer_id=self.customer_id,
        )


class ServiceNotConfiguredError(ProvisioningError):
    """Identity or billing store settings are missing."""


class BillingNotConfiguredError(ProvisioningError):
    """Razorpay settings are missing."""


class AuthenticationError(ProvisioningError):
    """Bearer token missing, malformed or not a valid session."""

    status_code = 401


class SubscriptionAlreadyActiveError(ProvisioningError):
    """The caller already has an active subscription."""

    status_code = 400


class BillingReadError(ProvisioningError):
    """The billing record could not be loaded."""


class PaymentProcessorCallError(ProvisioningError):
    """Base for failed Razorpay calls."""


class CustomerCreationError(PaymentProcessorCallError):
    pass


class PlanValidationError(PaymentProcessorCallError):
    pass


class CustomerValidationError(PaymentProcessorCallError):
    pass


class SubscriptionCreationError(PaymentProcessorCallError):
    pass


class BillingWriteError(ProvisioningError):
    """The billing record could not be written."""


class ProvisioningResult(BaseModel):
    """Outcome of a successful run."""

    key_id: str
    subscription_id: str
    short_url: Optional[str] = None
    record: BillingRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionProvisioner:
    """Runs the subscription provisioning workflow for one request.

    Collaborators not passed in are built from settings on first use, after the
    configuration check has passed, and closed by close().
    """

    def __init__(
        self,
        settings: BillingSettings,
        identity: Optional[IdentityProvider] = None,
        billing_store: Optional[BillingStore] = None,
        processor: Optional[PaymentProcessor] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize provisioner.

        Args:
            settings: Service settings
            identity: Identity provider (Supabase Auth if not provided)
            billing_store: Billing store (per settings.billing_store_backend if not provided)
            processor: Payment processor (Razorpay if not provided)
            clock: Returns the current aware datetime (UTC now if not provided)
        """
        self._settings = settings
        self._identity = identity
        self._billing_store = billing_store
        self._processor = processor
        self._clock = clock or _utcnow
        self._owned: list = []

    @property
    def identity(self) -> IdentityProvider:
        if self._identity is None:
            self._identity = SupabaseIdentityClient(
                self._settings.supabase_url,
                self._settings.anon_key,
                timeout=self._settings.http_timeout_seconds,
            )
            self._owned.append(self._identity)
        return self._identity

    @property
    def billing_store(self) -> BillingStore:
        if self._billing_store is None:
            if self._settings.billing_store_backend == "memory":
                self._billing_store = get_memory_billing_store()
            else:
                self._billing_store = SupabaseBillingStore(
                    self._settings.supabase_url,
                    self._settings.service_role_key,
                    table=self._settings.billing_table,
                    timeout=self._settings.http_timeout_seconds,
                )
                self._owned.append(self._billing_store)
        return self._billing_store

    @property
    def processor(self) -> PaymentProcessor:
        if self._processor is None:
            self._processor = RazorpayClient(
                self._settings.razorpay_key_id,
                self._settings.razorpay_key_secret,
                base_url=self._settings.razorpay_api_base,
                timeout=self._settings.http_timeout_seconds,
            )
            self._owned.append(self._processor)
        return self._processor

    def close(self) -> None:
        """Close collaborators this provisioner built."""
        while self._owned:
            self._owned.pop().close()

    def provision(self, authorization: Optional[str]) -> ProvisioningResult:
        """Create a subscription for the caller identified by the Authorization header.

        Args:
            authorization: Raw Authorization header value

        Returns:
            ProvisioningResult with the Razorpay key id, subscription id and checkout link

        Raises:
            ProvisioningError: Subclass matching the failing stage
        """
        self.check_configuration()
        user = self.authenticate(authorization)
        bind_context(user_id=user.id)

        existing = self.load_billing_state(user.id)
        customer_id = self.resolve_customer(user, existing)
        self.validate_identifiers(customer_id)
        subscription = self.create_subscription(user, customer_id)
        record = self.record_billing_state(user, existing, customer_id, subscription)

        logger.info(
            "subscription_provisioned",
            subscription_id=subscription.id,
            status=record.subscription_status,
        )
        return ProvisioningResult(
            key_id=self._settings.razorpay_key_id,
            subscription_id=subscription.id,
            short_url=subscription.short_url,
            record=record,
        )

    def check_configuration(self) -> None:
        """Raise if identity, store or processor settings are missing."""
        if not self._settings.identity_configured:
            logger.error("service_not_configured")
            raise ServiceNotConfiguredError("Server is not configured.")
        if not self._settings.processor_configured:
            logger.error("billing_not_configured")
            raise BillingNotConfiguredError("Billing is not configured.")

    def authenticate(self, authorization: Optional[str]) -> AuthenticatedUser:
        """Resolve the bearer token to a verified user."""
        token = extract_bearer_token(authorization)
        if not token:
            raise AuthenticationError("Missing authorization token.")

        claims = decode_token_claims(token)
        if claims is None or not claims.has_subject:
            logger.info(
                "token_missing_subject",
                decodable=claims is not None,
                role=claims.role if claims else None,
            )
            raise AuthenticationError(describe_missing_subject(claims))

        try:
            return self.identity.get_user(token)
        except IdentityError as e:
            logger.info("invalid_session", message=e.message, status_code=e.status_code)
            raise AuthenticationError(e.message or "Invalid session")

    def load_billing_state(self, user_id: str) -> Optional[BillingRecord]:
        """Load the caller's billing record and reject an active subscription."""
        try:
            existing = self.billing_store.find_by_user(user_id)
        except BillingStoreError as e:
            raise BillingReadError(e.message)

        if existing is None:
            logger.debug("billing_record_absent")
            return None

        if existing.subscription_status and existing.status is None:
            log_unrecognized_status(user_id, existing.subscription_status, source="store")

        if existing.is_active:
            logger.info(
                "subscription_already_active",
                subscription_id=existing.razorpay_subscription_id,
            )
            raise SubscriptionAlreadyActiveError("Subscription already active.")

        logger.debug("billing_record_loaded", status=existing.subscription_status)
        return existing

    def resolve_customer(self, user: AuthenticatedUser, existing: Optional[BillingRecord]) -> str:
        """Return the stored customer id, or create a Razorpay customer."""
        if existing is not None and existing.razorpay_customer_id:
            logger.info("customer_reused", customer_id=existing.razorpay_customer_id)
            return existing.razorpay_customer_id

        try:
            customer = self.processor.create_customer(
                name=user.display_name,
                notes={"user_id": user.id, "email": user.email},
            )
        except PaymentProcessorError as e:
            raise CustomerCreationError(
                f"Failed to create customer: {e.status_code} {e.status_text}",
                details=e.body,
            )

        logger.info("customer_created", customer_id=customer.id)
        return customer.id

    def validate_identifiers(self, customer_id: str) -> None:
        """Check the plan and customer are visible to these keys before subscribing."""
        plan_id = self._settings.razorpay_plan_id

        try:
            self.processor.get_plan(plan_id)
        except PaymentProcessorError as e:
            logger.warning("plan_validation_failed", plan_id=plan_id, status_code=e.status_code)
            raise PlanValidationError(
                "Razorpay plan_id is not valid for these keys/mode.",
                plan_id=plan_id,
                details=e.to_details(),
            )

        try:
            self.processor.get_customer(customer_id)
        except PaymentProcessorError as e:
            logger.warning(
                "customer_validation_failed", customer_id=customer_id, status_code=e.status_code
            )
            raise CustomerValidationError(
                "Razorpay customer_id is not valid for these keys/mode.",
                customer_id=customer_id,
                details=e.to_details(),
            )

    def create_subscription(self, user: AuthenticatedUser, customer_id: str) -> ProcessorSubscription:
        """Create the recurring subscription at Razorpay."""
        plan_id = self._settings.razorpay_plan_id
        try:
            subscription = self.processor.create_subscription(
                plan_id=plan_id,
                customer_id=customer_id,
                total_count=self._settings.subscription_total_count,
                notes={"user_id": user.id},
            )
        except PaymentProcessorError as e:
            raise SubscriptionCreationError(
                f"Failed to create subscription: {e.status_code} {e.status_text}",
                details=e.body,
                debug={"plan_id": plan_id, "customer_id": customer_id},
            )

        logger.info(
            "subscription_created",
            subscription_id=subscription.id,
            status=subscription.status,
        )
        return subscription

    def record_billing_state(
        self,
        user: AuthenticatedUser,
        existing: Optional[BillingRecord],
        customer_id: str,
        subscription: ProcessorSubscription,
    ) -> BillingRecord:
        """Upsert the billing record for the new subscription."""
        now = self._clock()
        status = str(subscription.status or DEFAULT_STATUS)
        if SubscriptionStatus.parse(status) is None:
            log_unrecognized_status(user.id, status, source="processor")

        record = BillingRecord(
            user_id=user.id,
            razorpay_customer_id=customer_id,
            razorpay_subscription_id=subscription.id,
            subscription_status=status,
            trial_ends_at=existing.trial_ends_at if existing and existing.trial_ends_at else now,
            current_period_end=subscription.current_period_end(),
            updated_at=now,
        )

        try:
            self.billing_store.upsert(record)
        except BillingStoreError as e:
            logger.error(
                "billing_record_write_failed",
                subscription_id=subscription.id,
                customer_id=customer_id,
                message=e.message,
            )
            raise BillingWriteError("Failed to update billing record.", details=e.message)

        log_billing_record_change(existing, record, reason="subscription_created")
        return record
