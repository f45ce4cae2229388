"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from followup.core.security import decode_access_token
from followup.db.session import get_db
from followup.models.practitioner import Practitioner
from followup.services.delivery import DeliveryProvider, get_delivery_provider

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> dict | None:
    """Extract and decode the current JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Decoded token payload or None
    """
    if not credentials:
        return None

    return decode_access_token(credentials.credentials)


async def get_current_practitioner(
    token: Annotated[dict | None, Depends(get_current_token)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> Practitioner:
    """Get the practitioner identified by the bearer token.

    Raises:
        HTTPException: If not authenticated or not a practitioner
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if token.get("actor_type") != "practitioner":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Practitioner authentication required",
        )

    practitioner = await session.get(Practitioner, token["sub"])

    if not practitioner or practitioner.is_deleted:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Practitioner not found",
        )

    if not practitioner.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Practitioner account is disabled",
        )

    return practitioner


def get_provider() -> DeliveryProvider:
    """Delivery provider for the current configuration."""
    return get_delivery_provider()


# Type aliases for cleaner dependency injection
CurrentPractitioner = Annotated[Practitioner, Depends(get_current_practitioner)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Provider = Annotated[DeliveryProvider, Depends(get_provider)]
