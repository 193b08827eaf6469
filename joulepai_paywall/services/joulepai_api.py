import requests
from requests.exceptions import HTTPError, RequestException
import logging
from typing import Any, Dict, Optional

from joulepai_paywall.api.models.payment import VerificationResult
from joulepai_paywall.core.config import settings

logger = logging.getLogger(__name__)


class PaymentServiceError(Exception):
    """
    Raised when the JoulePAI API could not give an answer.

    Covers network errors, timeouts, non-2xx responses and bodies that do not
    parse. A negative verification is NOT an error; it comes back as a
    VerificationResult with verified=False.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def normalize_handle(handle: str) -> str:
    """
    Reduce a wallet handle to the bare form JoulePAI stores.

    Surrounding whitespace and a single leading "@" are removed. Case is kept:
    handles are compared exactly.
    """
    handle = handle.strip()
    if handle.startswith("@"):
        handle = handle[1:]
    return handle


def _extract_detail(response: Optional[requests.Response]) -> Optional[str]:
    """Pull the 'detail' field out of an error body, if there is one."""
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("detail") is not None:
        return str(body["detail"])
    return None


class JoulePAIClient:
    """
    Thin client for the JoulePAI wallet API.

    The paywall only ever calls verify_payment. transfer is here for the
    paying side (see joulepai_paywall.client) and needs a key with
    wallet permissions.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        if not api_key:
            raise ValueError("JoulePAI api_key is required for payment verification")

        self.base_url = str(base_url or settings.JOULEPAI_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.JOULEPAI_VERIFY_TIMEOUT_SECONDS
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {api_key}"})

    @property
    def transfer_url(self) -> str:
        return f"{self.base_url}/wallet/transfer"

    @property
    def verify_url(self) -> str:
        return f"{self.base_url}/wallet/verify-payment"

    def verify_payment(self, transaction_id: str, expected_amount: int, recipient: str) -> VerificationResult:
        """
        Ask JoulePAI whether a transaction pays `expected_amount` to `recipient`.

        Args:
            transaction_id: Transaction id presented by the caller
            expected_amount: Price of the route in joules
            recipient: Bare recipient handle (no leading @)

        Returns:
            The parsed VerificationResult, positive or negative

        Raises:
            PaymentServiceError: If the request fails or the body is malformed
        """
        params = {
            "transaction_id": transaction_id,
            "expected_amount": expected_amount,
            "recipient": recipient,
        }
        try:
            response = self._session.get(self.verify_url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise PaymentServiceError(
                f"verify-payment returned HTTP {status}",
                status_code=status,
                detail=_extract_detail(e.response)
            ) from e
        except RequestException as e:
            raise PaymentServiceError(f"verify-payment request failed: {e}") from e

        try:
            return VerificationResult.model_validate(response.json())
        except ValueError as e:
            # Covers both undecodable JSON and pydantic ValidationError
            raise PaymentServiceError(
                f"Malformed verify-payment response: {e}",
                status_code=response.status_code
            ) from e

    def transfer(
        self,
        from_wallet_id: str,
        to_handle: str,
        amount: int,
        note: str,
        platform: str = "joulepai"
    ) -> str:
        """
        Send joules to a handle and return the transaction id.

        Raises:
            PaymentServiceError: If the transfer fails or the response has no id
        """
        request_body: Dict[str, Any] = {
            "from_wallet_id": from_wallet_id,
            "to_handle": normalize_handle(to_handle),
            "amount": amount,
            "platform": platform,
            "note": note,
        }
        try:
            response = self._session.post(self.transfer_url, json=request_body, timeout=self.timeout)
            response.raise_for_status()
        except HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise PaymentServiceError(
                f"transfer returned HTTP {status}",
                status_code=status,
                detail=_extract_detail(e.response)
            ) from e
        except RequestException as e:
            raise PaymentServiceError(f"transfer request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise PaymentServiceError(f"Malformed transfer response: {e}", status_code=response.status_code) from e

        if not isinstance(data, dict) or not data.get("id"):
            raise PaymentServiceError("Transfer response missing 'id' field", status_code=response.status_code)

        logger.info(f"Transferred {amount} joules to {to_handle}: transaction {data['id']}")
        return str(data["id"])
