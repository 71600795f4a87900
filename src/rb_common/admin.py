"""FastAPI dependency guarding internal endpoints.

Used by the resource store (open / refresh-rate / suspend hooks) and by
operators (on-demand reconciliation). End-user authentication lives in
the external auth service.

Usage:
    @router.post("/internal", dependencies=[Depends(require_admin_token)])
"""

import hmac
from typing import Annotated

from fastapi import Header

from config.settings import settings
from src.rb_common.errors import AdminTokenRequiredError


async def require_admin_token(
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Raise HTTP 403 (AppError 9003) unless X-Admin-Token matches settings.

    An empty ADMIN_API_TOKEN disables the guarded endpoints entirely.
    """
    expected = settings.ADMIN_API_TOKEN
    if not expected or not x_admin_token:
        raise AdminTokenRequiredError()
    if not hmac.compare_digest(x_admin_token.encode(), expected.encode()):
        raise AdminTokenRequiredError()
