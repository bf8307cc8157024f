from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from clinic_scheduler.core.cache import ViewCache
from clinic_scheduler.core.db import get_session  # noqa: F401 - re-exported for routes
from clinic_scheduler.core.security import decode_access_token

security = HTTPBearer(auto_error=False)


class ClinicUser(BaseModel):
    """Caller identity as asserted by the external auth provider."""

    id: int
    clinic_id: int


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> ClinicUser:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing or invalid authorization header")
    claims = decode_access_token(credentials.credentials)
    if not claims:
        raise _unauthorized("Invalid or expired token")
    try:
        return ClinicUser(id=int(claims["sub"]), clinic_id=int(claims["clinic_id"]))
    except (KeyError, TypeError, ValueError):
        raise _unauthorized("Invalid token")


def get_view_cache(request: Request) -> ViewCache:
    return request.app.state.view_cache
