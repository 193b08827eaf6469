# joulepai_paywall/x402/__init__.py
"""
x402 Payment Protocol Integration Module.

This module implements a JoulePAI-backed x402 paywall, enabling
pay-per-request access to individual FastAPI routes.

Key components:
- middleware: ChargeGate decision logic, Paywall factory and X402Middleware
- replay: FIFO cache of transaction ids already accepted by a gate
- ratelimit: Sliding window cap on verify-payment calls per gate

Configuration is loaded from environment variables via
joulepai_paywall.core.config.
"""

__version__ = "0.1.0"
