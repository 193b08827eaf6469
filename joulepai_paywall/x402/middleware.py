# joulepai_paywall/x402/middleware.py
"""
x402 paywall for FastAPI / Starlette routes.

A Paywall holds the server-side JoulePAI credential. Paywall.charge(amount,
recipient) builds a ChargeGate for one route; each gate owns its own
ReplayCache and VerificationRateLimiter.

For every request a gate:
1. Returns 402 with payment instructions when X-Payment-Proof is missing
2. Rejects proofs that are not transaction-id shaped (402)
3. Rejects proofs it has already accepted (402)
4. Throttles verify-payment calls (429)
5. Verifies the proof with JoulePAI, failing closed on any error (402)
6. Attaches a PaymentRecord to request.state.payment and calls the route

Gates are mounted with X402Middleware, keyed by (method, path).
"""
import logging
import re
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from joulepai_paywall.api.models.payment import (
    PaymentEndpoints,
    PaymentInstructions,
    PaymentRecord,
    PaymentRequirement,
)
from joulepai_paywall.services.joulepai_api import JoulePAIClient, PaymentServiceError, normalize_handle
from joulepai_paywall.x402.ratelimit import VerificationRateLimiter
from joulepai_paywall.x402.replay import ReplayCache

logger = logging.getLogger(__name__)

# x402 protocol constants
X402_PROTOCOL = "x402"
X_PAYMENT_PROOF_HEADER = "X-Payment-Proof"

# JoulePAI transaction ids are UUID-shaped: 8-4-4-4-12 hex digits
PROOF_PATTERN = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)


def is_valid_proof(proof: str) -> bool:
    """Check that a proof token has the canonical transaction id format."""
    return PROOF_PATTERN.fullmatch(proof) is not None


def create_payment_requirement(
    amount: int,
    recipient: str,
    endpoints: PaymentEndpoints,
    memo: Optional[str] = None,
    with_instructions: bool = False
) -> PaymentRequirement:
    """
    Build the payment terms for a 402 response.

    Args:
        amount: Price in joules
        recipient: Recipient handle as configured on the route
        endpoints: JoulePAI transfer/verify URLs
        memo: Request-specific note, normally "<METHOD> <path>"
        with_instructions: Include the step-by-step payment guide

    Returns:
        PaymentRequirement for the response body
    """
    instructions = None
    if with_instructions:
        instructions = PaymentInstructions(
            step1=(
                f"POST {endpoints.transfer} with {{ from_wallet_id, "
                f"to_handle: \"{recipient}\", amount: {amount}, note: \"...\" }}"
            ),
            step2='Extract "id" from the response (this is the transaction ID)',
            step3=f"Retry this request with header {X_PAYMENT_PROOF_HEADER}: {{transaction_id}}",
        )

    return PaymentRequirement(
        recipient=recipient,
        amount=amount,
        memo=memo,
        endpoints=endpoints,
        instructions=instructions,
    )


def create_402_response(
    payment_requirement: PaymentRequirement,
    message: Optional[str] = None,
    error: Optional[str] = None,
    already_claimed: Optional[bool] = None
) -> JSONResponse:
    """
    Create an HTTP 402 Payment Required response.

    Exactly one of message (informational) or error should be given.

    Returns:
        JSONResponse with 402 status and the payment terms restated
    """
    response_body = {
        "status": 402,
        "protocol": X402_PROTOCOL,
    }
    if message is not None:
        response_body["message"] = message
    if error is not None:
        response_body["error"] = error
    response_body["payment"] = payment_requirement.model_dump(exclude_none=True)
    if already_claimed is not None:
        response_body["already_claimed"] = already_claimed

    return JSONResponse(status_code=402, content=response_body)


def create_429_response(limiter: VerificationRateLimiter) -> JSONResponse:
    """Create the response sent when verify-payment calls are throttled."""
    return JSONResponse(
        status_code=429,
        content={
            "status": 429,
            "error": "Too many payment verification attempts, try again later",
        },
        headers={
            "X-RateLimit-Limit": str(limiter.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(limiter.window_seconds),
        }
    )


class ChargeGate:
    """
    Pay-per-request gate for a single route.

    Call it as `await gate(request, call_next)`. The replay cache and rate
    limiter persist for the lifetime of the gate and are never shared.

    Concurrent requests carrying the same proof can both pass the replay
    check while their verify-payment calls are in flight. JoulePAI's
    claim-on-verify is what prevents double spending; the local cache only
    short-circuits proofs already accepted here.
    """

    def __init__(
        self,
        amount: int,
        recipient: str,
        client: JoulePAIClient,
        replay_cache: Optional[ReplayCache] = None,
        rate_limiter: Optional[VerificationRateLimiter] = None,
        clock: Callable[[], float] = time.time
    ):
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"Charge amount must be a positive integer, got {amount!r}")

        self.amount = amount
        self.recipient = recipient
        self._client = client
        self._bare_recipient = normalize_handle(recipient)
        self.replay_cache = replay_cache if replay_cache is not None else ReplayCache()
        self.rate_limiter = rate_limiter if rate_limiter is not None else VerificationRateLimiter()
        self._clock = clock
        self._endpoints = PaymentEndpoints(transfer=client.transfer_url, verify=client.verify_url)

    def payment_requirement(self, request: Request, with_instructions: bool = False) -> PaymentRequirement:
        return create_payment_requirement(
            amount=self.amount,
            recipient=self.recipient,
            endpoints=self._endpoints,
            memo=f"{request.method} {request.url.path}",
            with_instructions=with_instructions,
        )

    async def check(self, request: Request) -> Optional[Response]:
        """
        Run the payment checks for a request.

        Returns:
            A rejection response, or None when the request is paid for. In the
            latter case request.state.payment holds the PaymentRecord.
        """
        proof = request.headers.get(X_PAYMENT_PROOF_HEADER)

        if not proof:
            return create_402_response(
                self.payment_requirement(request, with_instructions=True),
                message="Payment required",
            )

        if not is_valid_proof(proof):
            return create_402_response(
                self.payment_requirement(request),
                error=f"Invalid {X_PAYMENT_PROOF_HEADER} format",
            )

        if proof in self.replay_cache:
            return create_402_response(
                self.payment_requirement(request),
                error="Transaction already used",
            )

        if not self.rate_limiter.record_attempt(self._clock()):
            return create_429_response(self.rate_limiter)

        # requests is blocking; run it off the event loop so only this request waits
        try:
            result = await run_in_threadpool(
                self._client.verify_payment,
                proof,
                self.amount,
                self._bare_recipient,
            )
        except PaymentServiceError as e:
            logger.error(f"x402: verify failed: {e.status_code} {e.detail or e}")
            return create_402_response(
                self.payment_requirement(request),
                error=e.detail or "Payment verification failed",
            )

        if not result.verified:
            return create_402_response(
                self.payment_requirement(request),
                error=result.reason or "Payment not verified",
                already_claimed=bool(result.already_claimed),
            )

        self.replay_cache.add(proof)
        request.state.payment = PaymentRecord(
            transactionId=proof,
            amount=result.actual_amount,
            recipient=result.actual_recipient,
            expectedAmount=result.expected_amount,
        )
        return None

    async def __call__(
        self,
        request: Request,
        call_next: Callable[[Request], Response]
    ) -> Response:
        rejection = await self.check(request)
        if rejection is not None:
            return rejection
        return await call_next(request)


class Paywall:
    """
    Factory for ChargeGates sharing one JoulePAI credential.

    Usage:
        paywall = Paywall(api_key=settings.JOULEPAI_API_KEY)
        gate = paywall.charge(500, "@my-handle")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[JoulePAIClient] = None
    ):
        self.client = client if client is not None else JoulePAIClient(
            api_key=api_key, base_url=base_url, timeout=timeout
        )

    def charge(
        self,
        amount: int,
        recipient: str,
        rate_limit: Optional[int] = None,
        window_seconds: Optional[int] = None,
        replay_cache_size: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ) -> ChargeGate:
        """
        Create a gate charging `amount` joules to `recipient`.

        Each call returns a new gate with its own replay cache and rate limiter.
        """
        return ChargeGate(
            amount=amount,
            recipient=recipient,
            client=self.client,
            replay_cache=ReplayCache(capacity=replay_cache_size),
            rate_limiter=VerificationRateLimiter(limit=rate_limit, window_seconds=window_seconds),
            clock=clock,
        )


def _route_key(method: str, path: str) -> Tuple[str, str]:
    return (method.upper(), path.rstrip("/") or "/")


class X402Middleware(BaseHTTPMiddleware):
    """
    Mounts ChargeGates on specific routes.

    Requests whose (method, path) has no gate pass through unchanged.
    Trailing slashes are ignored when matching.
    """

    def __init__(self, app, gates: Dict[Tuple[str, str], ChargeGate]):
        super().__init__(app)
        self._gates = {_route_key(method, path): gate for (method, path), gate in gates.items()}

    def gate_for(self, method: str, path: str) -> Optional[ChargeGate]:
        return self._gates.get(_route_key(method, path))

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response]
    ) -> Response:
        gate = self.gate_for(request.method, request.url.path)
        if gate is None:
            return await call_next(request)
        return await gate(request, call_next)
