# joulepai_paywall/main.py
from fastapi import FastAPI
from joulepai_paywall.core.config import settings
from joulepai_paywall.api.endpoints import generate
from joulepai_paywall.x402.middleware import Paywall, X402Middleware
import logging

# Configure basic logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_PREFIX = "/api"
GENERATE_PATH = f"{API_PREFIX}/generate"

app = FastAPI(title=settings.PROJECT_NAME)

# The demo server charges to a configured handle with a server-side key
for required in ("JOULEPAI_API_KEY", "JOULEPAI_HANDLE"):
    if not getattr(settings, required):
        raise RuntimeError(f"{required} not set in .env")

paywall = Paywall(api_key=settings.JOULEPAI_API_KEY)

# Paywalled routes: (method, path) -> gate
app.add_middleware(
    X402Middleware,
    gates={
        ("POST", GENERATE_PATH): paywall.charge(settings.GENERATE_PRICE_JOULES, settings.JOULEPAI_HANDLE),
    },
)

app.include_router(generate.router, prefix=API_PREFIX, tags=["demo"])

@app.get("/health", summary="Health Check", tags=["default"])
def health():
    """ Basic health check endpoint. """
    return {"status": "ok", "handle": settings.JOULEPAI_HANDLE}


if __name__ == "__main__":
    import uvicorn

    logger.info(f"{settings.PROJECT_NAME} running on http://localhost:{settings.PORT}")
    logger.info(f"Paywalled endpoint: POST {GENERATE_PATH} ({settings.GENERATE_PRICE_JOULES} joules)")
    logger.info(f"Free endpoint: GET {API_PREFIX}/free")
    logger.info(f"Handle: {settings.JOULEPAI_HANDLE}")
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
