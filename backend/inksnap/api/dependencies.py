from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from .auth import decode_access_token, oauth2_scheme


def get_current_identity(request: Request, token: Optional[str] = Depends(oauth2_scheme)) -> str:
    """Resolve the acting identity from the bearer token.

    Event streams opened by browsers cannot set headers, so an
    ``access_token`` query parameter is accepted as a fallback.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    jwt_token = token or request.query_params.get("access_token")
    if not jwt_token:
        raise credentials_exception
    identity = decode_access_token(jwt_token)
    if identity is None:
        raise credentials_exception
    return identity
