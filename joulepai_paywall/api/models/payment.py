from typing import Optional

from pydantic import BaseModel, StrictBool


class PaymentEndpoints(BaseModel):
    """
    JoulePAI endpoints a caller needs to settle and check a payment.
    """
    transfer: str
    verify: str


class PaymentInstructions(BaseModel):
    step1: str
    step2: str
    step3: str


class PaymentRequirement(BaseModel):
    """
    Payment terms restated in every 402 response.

    memo and instructions are request-specific and omitted when unset.
    """
    recipient: str
    amount: int
    currency: str = "joules"
    rate: str = "1,000 joules = $1 USD/USDC"
    network: str = "joulepai"
    memo: Optional[str] = None
    endpoints: PaymentEndpoints
    instructions: Optional[PaymentInstructions] = None


class VerificationResult(BaseModel):
    """
    Body returned by the JoulePAI verify-payment endpoint.

    Only ever built from a remote response; the gate never fabricates
    a verified result.
    """
    verified: StrictBool
    actual_amount: Optional[int] = None
    actual_recipient: Optional[str] = None
    expected_amount: Optional[int] = None
    reason: Optional[str] = None
    already_claimed: Optional[StrictBool] = None


class PaymentRecord(BaseModel):
    """
    Verified payment attached to request.state.payment for downstream handlers.
    """
    verified: bool = True
    transactionId: str
    amount: Optional[int] = None
    recipient: Optional[str] = None
    expectedAmount: Optional[int] = None
