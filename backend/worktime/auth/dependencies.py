"""
Authentication dependencies for FastAPI endpoints.

Resolve the bearer token into an Actor and enforce role requirements before
a route reaches the data layer.
"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..services.tenancy import MANAGER_ROLES, Actor, require_role
from .jwt_handler import JWTHandler

security = HTTPBearer()


def get_jwt_handler(request: Request) -> JWTHandler:
    return request.app.state.jwt_handler


# PUBLIC_INTERFACE
async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    handler: JWTHandler = Depends(get_jwt_handler),
) -> Actor:
    """
    Get the authenticated actor from the JWT token.

    Raises:
        HTTPException: If the token is invalid or lacks actor claims
    """
    actor = handler.actor_from_token(credentials.credentials)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


# PUBLIC_INTERFACE
async def get_current_manager(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Get the current actor and ensure they are a manager or admin."""
    require_role(actor, *MANAGER_ROLES)
    return actor


# PUBLIC_INTERFACE
async def get_current_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Get the current actor and ensure they are an admin."""
    require_role(actor, "admin")
    return actor
