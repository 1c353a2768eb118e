import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from pix_checkout.checkout import CheckoutSessions
from pix_checkout.config import MISSING_API_KEY_WARNING, load_settings
from pix_checkout.database import Base, engine
from pix_checkout.pixgo_service import GatewayClient
from pix_checkout.routes import router
from pix_checkout.store import SqlIntentStore

settings = load_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    gateway = GatewayClient(settings)
    app.state.gateway = gateway
    app.state.sessions = CheckoutSessions(
        app.state.store, gateway, settings.poll_interval, idle_timeout=settings.session_idle_timeout
    )
    app.state.sessions.start_reaper(max(settings.poll_interval, 1.0))
    if not settings.api_key_configured:
        logger.warning(MISSING_API_KEY_WARNING)
    try:
        yield
    finally:
        await app.state.sessions.close_all()
        await gateway.aclose()


app = FastAPI(title="PIX Checkout", lifespan=lifespan)
app.state.settings = settings
app.state.store = SqlIntentStore()

app.include_router(router)

Base.metadata.create_all(bind=engine)


def run() -> None:
    uvicorn.run(
        "pix_checkout.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
