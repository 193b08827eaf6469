from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Request
import logging

from joulepai_paywall.api.models.generate import FreeResponse, GenerateRequest, GenerateResponse

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_PROMPT = "Write a haiku about agents paying each other"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/free", response_model=FreeResponse)
async def free_content() -> FreeResponse:
    """
    Public endpoint, no payment required.
    """
    return FreeResponse(message="This is free content", timestamp=_now())


@router.post("/generate", response_model=GenerateResponse)
async def generate(request: Request, body: Optional[GenerateRequest] = None) -> GenerateResponse:
    """
    Paywalled endpoint.

    Only reached once the x402 gate has verified the payment, so
    request.state.payment always holds the PaymentRecord here.
    """
    payment = request.state.payment
    prompt = (body.prompt if body else None) or DEFAULT_PROMPT
    logger.info(f"Generate endpoint paid by transaction {payment.transactionId}")

    return GenerateResponse(
        status="success",
        prompt=prompt,
        result="Joules flow between\nMachines negotiate\nNo humans needed",
        payment=payment,
        timestamp=_now(),
    )
