"""Billing endpoints.

Implements:
- POST    /billing/create-subscription - Create a Razorpay subscription for the caller
- OPTIONS /billing/create-subscription - CORS pre-flight
- any other method                     - 405 (see main.create_app)

The same handlers are mounted at /functions/v1/billing-create-subscription for
clients still calling the edge-function URL.
"""

from typing import Any, Iterator, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse, PlainTextResponse

from billing_provisioner.config import get_config
from billing_provisioner.logging_config import get_logger
from billing_provisioner.models import CreateSubscriptionResponse, ErrorResponse
from billing_provisioner.services.provisioning import ProvisioningError, SubscriptionProvisioner

logger = get_logger(__name__)
router = APIRouter(tags=["Billing"])

CREATE_SUBSCRIPTION_PATHS = (
    "/billing/create-subscription",
    "/functions/v1/billing-create-subscription",
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def json_response(body: Any, status_code: int = 200) -> JSONResponse:
    """JSON response carrying the CORS header set."""
    return JSONResponse(content=body, status_code=status_code, headers=dict(CORS_HEADERS))


def error_response(error: ErrorResponse, status_code: int) -> JSONResponse:
    return json_response(error.to_body(), status_code=status_code)


def get_subscription_provisioner() -> Iterator[SubscriptionProvisioner]:
    """Provisioner for one request, built from the process-wide settings."""
    provisioner = SubscriptionProvisioner(get_config().settings)
    try:
        yield provisioner
    finally:
        provisioner.close()


def create_subscription(
    authorization: Optional[str] = Header(None),
    provisioner: SubscriptionProvisioner = Depends(get_subscription_provisioner),
) -> JSONResponse:
    """Create a recurring subscription for the signed-in user.

    Declared sync so FastAPI runs it in the threadpool; every upstream call
    blocks until it completes.

    Responses:
        200: keyId, subscriptionId, subscription_id and short_url
        400: Subscription already active
        401: Missing, malformed or invalid token
        500: Misconfiguration, billing store or Razorpay failure
    """
    logger.info("create_subscription_request")

    try:
        result = provisioner.provision(authorization)
    except ProvisioningError as e:
        logger.info(
            "create_subscription_failed",
            error_type=type(e).__name__,
            status_code=e.status_code,
            error=e.message,
        )
        return error_response(e.to_response(), e.status_code)

    body = CreateSubscriptionResponse(
        keyId=result.key_id,
        subscriptionId=result.subscription_id,
        subscription_id=result.subscription_id,
        short_url=result.short_url,
    )
    return json_response(body.model_dump())


async def create_subscription_preflight() -> PlainTextResponse:
    """Acknowledge CORS pre-flight without touching any collaborator."""
    return PlainTextResponse("ok", headers=dict(CORS_HEADERS))


def method_not_allowed() -> JSONResponse:
    """405 body for any method the routes do not serve."""
    return error_response(ErrorResponse(error="Method not allowed"), 405)


for _path in CREATE_SUBSCRIPTION_PATHS:
    router.add_api_route(
        _path,
        create_subscription,
        methods=["POST"],
        response_model=None,
        summary="Create subscription",
        responses={
            200: {"model": CreateSubscriptionResponse},
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    router.add_api_route(
        _path,
        create_subscription_preflight,
        methods=["OPTIONS"],
        include_in_schema=False,
    )
