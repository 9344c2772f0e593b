from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .ledger import LedgerEngine, LedgerReports
from .settings import giftcard_settings

logger = logging.getLogger(__name__)

ACCEPTED_SCOPES = {"access", "giftcard_access"}
ADMIN_ROLE = "admin"


def get_token_claims(request: Request) -> dict[str, Any]:
    """Decode and validate the identity service's bearer token."""
    settings = giftcard_settings()
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = auth.split(" ", 1)[1].strip()
    try:
        decoded = jwt.decode(
            token,
            settings.secret_key,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as exc:
        logger.warning("giftcard.auth.jwt_decode_failed", extra={"error": str(exc)})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    scope = decoded.get("scope")
    if scope not in ACCEPTED_SCOPES:
        logger.info("giftcard.auth.scope_rejected", extra={"scope": scope})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token scope")
    return decoded


def get_current_user_id(claims: Annotated[dict[str, Any], Depends(get_token_claims)]) -> int:
    sub = claims.get("sub")
    if sub is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing subject")
    if isinstance(sub, str) and sub.isdigit():
        return int(sub)
    logger.info("giftcard.auth.unsupported_subject_format", extra={"subject": sub})
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unsupported subject format (expected numeric)")


def require_admin(claims: Annotated[dict[str, Any], Depends(get_token_claims)]) -> dict[str, Any]:
    roles = {role.strip() for role in str(claims.get("roles") or "").split(",") if role.strip()}
    if ADMIN_ROLE not in roles:
        logger.info("giftcard.auth.admin_required", extra={"subject": claims.get("sub")})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return claims


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    from .db.session import async_session_factory

    return async_session_factory


SessionFactoryDep = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


async def get_ledger(request: Request, session_factory: SessionFactoryDep) -> LedgerEngine:
    # One engine per app so every request shares the same per-card lock registry;
    # the check-and-set must stay on the event loop.
    ledger: LedgerEngine | None = getattr(request.app.state, "ledger", None)
    if ledger is None or ledger.session_factory is not session_factory:
        ledger = LedgerEngine.from_settings(session_factory, giftcard_settings())
        request.app.state.ledger = ledger
    return ledger


def get_reports(session_factory: SessionFactoryDep) -> LedgerReports:
    return LedgerReports(session_factory)


CurrentUserDep = Annotated[int, Depends(get_current_user_id)]
AdminDep = Annotated[dict[str, Any], Depends(require_admin)]
LedgerDep = Annotated[LedgerEngine, Depends(get_ledger)]
ReportsDep = Annotated[LedgerReports, Depends(get_reports)]
