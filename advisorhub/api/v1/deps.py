"""Shared endpoint dependencies: the calling advisor."""

import uuid
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from advisorhub.core.audit import audit_advisor_provisioned, audit_token_rejected
from advisorhub.core.rate_limit import get_client_ip
from advisorhub.core.security import decode_token
from advisorhub.db.session import get_db
from advisorhub.models.advisor import Advisor

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_advisor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Advisor:
    """Resolve the bearer token to an advisor, creating the row on first use."""
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type", "access") != "access" or not payload.get("sub"):
        audit_token_rejected(get_client_ip(request), "invalid token")
        raise _unauthorized("Invalid or expired token")

    external_id = str(payload["sub"])
    result = await db.execute(select(Advisor).where(Advisor.external_id == external_id))
    advisor = result.scalar_one_or_none()

    if advisor is None:
        advisor = Advisor(
            id=uuid.uuid4(),
            external_id=external_id,
            email=payload.get("email"),
            display_name=payload.get("name"),
            is_active=True,
        )
        db.add(advisor)
        await db.flush()
        audit_advisor_provisioned(str(advisor.id), external_id, advisor.email)
        logger.info("Provisioned advisor %s for subject %s", advisor.id, external_id)
    elif not advisor.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Advisor account is disabled")

    return advisor
