# joulepai_paywall/client.py
"""
Example x402 client for a JoulePAI paywalled server.

Flow:
1. Call the endpoint without payment
2. On 402, read the payment terms from the body
3. Transfer joules through the JoulePAI API
4. Retry with the transaction id in X-Payment-Proof

Run with the demo server up:
    JOULEPAI_API_KEY=... JOULEPAI_CLIENT_WALLET_ID=... python -m joulepai_paywall.client
"""
import json
import logging
from typing import Any, Dict, Optional

import requests

from joulepai_paywall.core.config import settings
from joulepai_paywall.services.joulepai_api import JoulePAIClient
from joulepai_paywall.x402.middleware import X_PAYMENT_PROOF_HEADER

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:3000"


def call_paywalled_endpoint(
    server_url: str,
    endpoint: str,
    joulepai: JoulePAIClient,
    wallet_id: str,
    method: str = "POST",
    data: Optional[Dict[str, Any]] = None,
    timeout: float = 30
) -> Dict[str, Any]:
    """
    Call an endpoint, paying for it if the server answers 402.

    Args:
        server_url: Base URL of the paywalled server
        endpoint: Path to call, e.g. /api/generate
        joulepai: Client holding a key allowed to transfer from wallet_id
        wallet_id: Wallet to pay from
        method: HTTP method
        data: Optional JSON body

    Returns:
        The JSON body of the final response

    Raises:
        requests.HTTPError: If the paid retry is still rejected
        PaymentServiceError: If the transfer fails
    """
    url = f"{server_url.rstrip('/')}{endpoint}"
    logger.info(f"Calling {method} {endpoint} without payment")
    response = requests.request(method, url, json=data, timeout=timeout)

    if response.status_code != 402:
        logger.info(f"No payment required: {response.status_code}")
        return response.json()

    payment = response.json()["payment"]
    logger.info(f"Got 402: {payment['amount']} joules to {payment['recipient']}")

    transaction_id = joulepai.transfer(
        from_wallet_id=wallet_id,
        to_handle=payment["recipient"],
        amount=payment["amount"],
        note=payment.get("memo") or f"x402 payment: {endpoint}",
    )
    logger.info(f"Payment sent, retrying with {X_PAYMENT_PROOF_HEADER}: {transaction_id}")

    response = requests.request(
        method,
        url,
        json=data,
        headers={X_PAYMENT_PROOF_HEADER: transaction_id},
        timeout=timeout
    )
    response.raise_for_status()
    logger.info(f"Access granted ({response.status_code})")
    return response.json()


def main(server_url: str = DEFAULT_SERVER_URL) -> None:
    logging.basicConfig(level=logging.INFO)

    if not settings.JOULEPAI_API_KEY:
        raise SystemExit("JOULEPAI_API_KEY not set in .env")
    if not settings.JOULEPAI_CLIENT_WALLET_ID:
        raise SystemExit("JOULEPAI_CLIENT_WALLET_ID not set in .env")

    joulepai = JoulePAIClient(api_key=settings.JOULEPAI_API_KEY)

    free = call_paywalled_endpoint(
        server_url, "/api/free", joulepai, settings.JOULEPAI_CLIENT_WALLET_ID, method="GET"
    )
    print(json.dumps(free, indent=2))

    paid = call_paywalled_endpoint(
        server_url,
        "/api/generate",
        joulepai,
        settings.JOULEPAI_CLIENT_WALLET_ID,
        data={"prompt": "Write a limerick about machine payments"},
    )
    print(json.dumps(paid, indent=2))


if __name__ == "__main__":
    main()
