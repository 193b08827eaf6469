from typing import Optional

from pydantic import BaseModel

from joulepai_paywall.api.models.payment import PaymentRecord


class GenerateRequest(BaseModel):
    prompt: Optional[str] = None


class GenerateResponse(BaseModel):
    """
    Response model for the paywalled generate endpoint.
    """
    status: str
    prompt: str
    result: str
    payment: PaymentRecord
    timestamp: str


class FreeResponse(BaseModel):
    message: str
    timestamp: str
