"""
Bearer-token authentication.

Every account has an opaque api_token; the Authorization header is resolved
to the Actor the services expect.
"""
from typing import Optional

from fastapi import Header, HTTPException, Request

from models.actor import Actor


def get_actor(request: Request, authorization: Optional[str] = Header(default=None)) -> Actor:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=401,
            detail="Unauthenticated request",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = request.app.state.orders.db.get_user_by_token(token.strip())
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Actor(id=user["id"], role=user["role"], restaurant_id=user["restaurant_id"])
