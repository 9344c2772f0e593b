from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from shared import RequestIDMiddleware, register_exception_handlers

from .dependencies import get_session_factory
from .ledger import LedgerEngine
from .routes import register_routes
from .settings import giftcard_settings
from .startup import init_service_startup, setup_instrumentation, setup_logging, shutdown_instrumentation


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.ledger = LedgerEngine.from_settings(get_session_factory(), giftcard_settings())
    try:
        await init_service_startup(app)
    except Exception as e:
        # Keep serving so /readyz can report the problem
        logger.error("Startup incomplete: {}", e)
    yield
    await shutdown_instrumentation(app)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Gift Card Service", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)
    register_routes(app)
    setup_instrumentation(app)
    return app
