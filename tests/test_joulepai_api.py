# tests/test_joulepai_api.py
"""
Unit tests for the JoulePAI API client.
"""
import pytest
import requests
from typing import Tuple
from unittest.mock import MagicMock

from joulepai_paywall.services.joulepai_api import (
    JoulePAIClient,
    PaymentServiceError,
    normalize_handle,
)


def make_response(status_code: int = 200, json_data=None, json_error: Exception = None) -> MagicMock:
    """Build a mock requests.Response."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = json_data
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(response=response)
    return response


def make_client(response: MagicMock = None, side_effect: Exception = None) -> Tuple[JoulePAIClient, MagicMock]:
    session = MagicMock()
    session.headers = {}
    if side_effect is not None:
        session.get.side_effect = side_effect
        session.post.side_effect = side_effect
    else:
        session.get.return_value = response
        session.post.return_value = response
    client = JoulePAIClient(
        api_key="secret",
        base_url="https://joulepai.test/api/v1/",
        timeout=5,
        session=session
    )
    return client, session


class TestNormalizeHandle:
    """Test recipient handle normalization."""

    def test_strips_leading_at(self):
        assert normalize_handle("@acct") == "acct"

    def test_bare_handle_unchanged(self):
        assert normalize_handle("acct") == "acct"

    def test_strips_surrounding_whitespace(self):
        assert normalize_handle("  @acct \n") == "acct"

    def test_only_one_at_removed(self):
        assert normalize_handle("@@acct") == "@acct"

    def test_case_preserved(self):
        assert normalize_handle("@My-API") == "My-API"


class TestClientSetup:
    """Test client construction."""

    def test_api_key_required(self):
        """Missing API key is a configuration error."""
        with pytest.raises(ValueError):
            JoulePAIClient(api_key=None)
        with pytest.raises(ValueError):
            JoulePAIClient(api_key="")

    def test_bearer_header_and_urls(self):
        """Client authenticates with a bearer token and builds wallet URLs."""
        client, session = make_client(make_response(json_data={}))
        assert session.headers["Authorization"] == "Bearer secret"
        assert client.verify_url == "https://joulepai.test/api/v1/wallet/verify-payment"
        assert client.transfer_url == "https://joulepai.test/api/v1/wallet/transfer"

    def test_defaults_from_config(self):
        """Base URL and timeout default to settings."""
        client = JoulePAIClient(api_key="secret")
        assert client.base_url == "https://joulepai.test/api/v1"
        assert client.timeout == 10.0


class TestVerifyPayment:
    """Test verify_payment."""

    def test_verified_result(self):
        """A positive body is parsed into a VerificationResult."""
        client, session = make_client(make_response(json_data={
            "verified": True,
            "actual_amount": 500,
            "actual_recipient": "acct",
            "expected_amount": 500,
        }))

        result = client.verify_payment("11111111-1111-1111-1111-111111111111", 500, "acct")

        assert result.verified is True
        assert result.actual_amount == 500
        assert result.actual_recipient == "acct"
        session.get.assert_called_once_with(
            "https://joulepai.test/api/v1/wallet/verify-payment",
            params={
                "transaction_id": "11111111-1111-1111-1111-111111111111",
                "expected_amount": 500,
                "recipient": "acct",
            },
            timeout=5
        )

    def test_negative_result_is_not_an_error(self):
        """verified=false comes back as a result, not an exception."""
        client, _ = make_client(make_response(json_data={
            "verified": False,
            "reason": "amount mismatch",
            "already_claimed": False,
        }))

        result = client.verify_payment("tx", 500, "acct")

        assert result.verified is False
        assert result.reason == "amount mismatch"

    def test_timeout_raises_service_error(self):
        """Timeouts become PaymentServiceError."""
        client, _ = make_client(side_effect=requests.Timeout("read timed out"))

        with pytest.raises(PaymentServiceError) as exc_info:
            client.verify_payment("tx", 500, "acct")

        assert exc_info.value.status_code is None
        assert "timed out" in str(exc_info.value)

    def test_connection_error_raises_service_error(self):
        client, _ = make_client(side_effect=requests.ConnectionError("refused"))

        with pytest.raises(PaymentServiceError):
            client.verify_payment("tx", 500, "acct")

    def test_http_error_carries_status_and_detail(self):
        """Non-2xx responses expose status code and detail."""
        client, _ = make_client(make_response(404, json_data={"detail": "Transaction not found"}))

        with pytest.raises(PaymentServiceError) as exc_info:
            client.verify_payment("tx", 500, "acct")

        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "Transaction not found"

    def test_http_error_without_json_body(self):
        """Detail is None when the error body is not JSON."""
        client, _ = make_client(make_response(502, json_error=ValueError("no json")))

        with pytest.raises(PaymentServiceError) as exc_info:
            client.verify_payment("tx", 500, "acct")

        assert exc_info.value.status_code == 502
        assert exc_info.value.detail is None

    def test_invalid_json_raises_service_error(self):
        """Undecodable success body is treated as a failure."""
        client, _ = make_client(make_response(json_error=ValueError("Expecting value")))

        with pytest.raises(PaymentServiceError) as exc_info:
            client.verify_payment("tx", 500, "acct")

        assert exc_info.value.status_code == 200

    def test_missing_verified_field_raises_service_error(self):
        """Body without 'verified' is malformed."""
        client, _ = make_client(make_response(json_data={"actual_amount": 500}))

        with pytest.raises(PaymentServiceError):
            client.verify_payment("tx", 500, "acct")

    @pytest.mark.parametrize("value", ["yes", "true", "1", 1, "on"])
    def test_non_boolean_verified_raises_service_error(self, value):
        """Truthy non-boolean 'verified' values are malformed, not a yes."""
        client, _ = make_client(make_response(json_data={"verified": value, "actual_amount": 500}))

        with pytest.raises(PaymentServiceError):
            client.verify_payment("tx", 500, "acct")

    def test_non_object_body_raises_service_error(self):
        client, _ = make_client(make_response(json_data=["verified"]))

        with pytest.raises(PaymentServiceError):
            client.verify_payment("tx", 500, "acct")


class TestTransfer:
    """Test transfer (client side of the flow)."""

    def test_transfer_returns_transaction_id(self):
        """Transfer posts to the wallet API and returns the id."""
        client, session = make_client(make_response(json_data={"id": "22222222-2222-2222-2222-222222222222"}))

        tx_id = client.transfer("wallet-1", "@acct", 500, "POST /api/generate")

        assert tx_id == "22222222-2222-2222-2222-222222222222"
        _, kwargs = session.post.call_args
        assert kwargs["json"] == {
            "from_wallet_id": "wallet-1",
            "to_handle": "acct",
            "amount": 500,
            "platform": "joulepai",
            "note": "POST /api/generate",
        }

    def test_transfer_missing_id(self):
        client, _ = make_client(make_response(json_data={"status": "ok"}))

        with pytest.raises(PaymentServiceError):
            client.transfer("wallet-1", "acct", 500, "note")

    def test_transfer_http_error(self):
        client, _ = make_client(make_response(400, json_data={"detail": "Insufficient balance"}))

        with pytest.raises(PaymentServiceError) as exc_info:
            client.transfer("wallet-1", "acct", 500, "note")

        assert exc_info.value.detail == "Insufficient balance"
