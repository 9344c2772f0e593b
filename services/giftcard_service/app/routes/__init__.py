from fastapi import APIRouter, FastAPI

from .cards import router as cards_router
from .reports import router as reports_router
from . import system


def register_routes(app: FastAPI) -> None:
    router = APIRouter(prefix="/api/v1")
    router.include_router(cards_router, prefix="/cards", tags=["cards"])
    router.include_router(reports_router, prefix="/reports", tags=["reports"])
    router.include_router(system.router, tags=["system"])
    app.include_router(router)
