# tests/conftest.py
"""
Shared fixtures for the paywall tests.

Settings are read from the environment at import time, so the JoulePAI
variables the demo app needs are set here before any test imports it.
"""
import os

os.environ.setdefault("JOULEPAI_API_KEY", "test-api-key")
os.environ.setdefault("JOULEPAI_HANDLE", "@demo-api")
os.environ.setdefault("JOULEPAI_API_URL", "https://joulepai.test/api/v1")

from unittest.mock import MagicMock

from fastapi import FastAPI, Request

from joulepai_paywall.api.models.payment import VerificationResult
from joulepai_paywall.x402.middleware import ChargeGate, X402Middleware
from joulepai_paywall.x402.ratelimit import VerificationRateLimiter
from joulepai_paywall.x402.replay import ReplayCache

TRANSFER_URL = "https://joulepai.test/api/v1/wallet/transfer"
VERIFY_URL = "https://joulepai.test/api/v1/wallet/verify-payment"


class FakeClock:
    """Manually advanced clock for rate limit tests."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


def make_client(result: VerificationResult = None, side_effect=None) -> MagicMock:
    """Build a stand-in JoulePAIClient whose verify_payment is a mock."""
    client = MagicMock()
    client.transfer_url = TRANSFER_URL
    client.verify_url = VERIFY_URL
    if side_effect is not None:
        client.verify_payment.side_effect = side_effect
    else:
        client.verify_payment.return_value = result
    return client


def verified(amount: int = 500, recipient: str = "acct") -> VerificationResult:
    return VerificationResult(
        verified=True,
        actual_amount=amount,
        actual_recipient=recipient,
        expected_amount=amount,
    )


def make_gate(client, amount=500, recipient="@acct", limit=10, capacity=100, clock=None) -> ChargeGate:
    """Build a gate with small, test-sized limits."""
    return ChargeGate(
        amount=amount,
        recipient=recipient,
        client=client,
        replay_cache=ReplayCache(capacity=capacity),
        rate_limiter=VerificationRateLimiter(limit=limit, window_seconds=60),
        clock=clock or FakeClock(),
    )


def create_test_app(gate: ChargeGate) -> FastAPI:
    """Create a test FastAPI app with one paywalled and one free route."""
    app = FastAPI()

    @app.post("/api/generate")
    async def generate(request: Request):
        return {"status": "success", "payment": request.state.payment.model_dump()}

    @app.get("/api/free")
    async def free():
        return {"message": "This is free content"}

    app.add_middleware(X402Middleware, gates={("POST", "/api/generate"): gate})
    return app
