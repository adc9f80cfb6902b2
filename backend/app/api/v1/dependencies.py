"""
API Dependencies
Shared dependencies for account authentication and call engine access
"""
import base64
import binascii
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Header, Path, Request, status
from pydantic import BaseModel

from app.core.config import settings
from app.domain.services.call_service import CallService


class CurrentAccount(BaseModel):
    """Account verified from the request's token"""
    account_sid: str
    user_id: Optional[str] = None
    email: Optional[str] = None


def get_call_service(request: Request) -> CallService:
    """
    Get the CallService built at startup.

    Raises:
        RuntimeError: If the application lifespan has not run
    """
    service = getattr(request.app.state, "call_service", None)
    if service is None:
        raise RuntimeError("CallService is not initialized. Is the application lifespan running?")
    return service


def _auth_error(message: str, code: str = "AUTHENTICATION_ERROR") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_token(authorization: str) -> str:
    """
    Pull the JWT out of the Authorization header.

    Supports "Bearer <jwt>" and, for Twilio-style clients,
    "Basic base64(<AccountSid>:<jwt>)".
    """
    scheme, _, credentials = authorization.partition(" ")
    scheme = scheme.lower()
    credentials = credentials.strip()

    if scheme == "bearer" and credentials:
        return credentials

    if scheme == "basic" and credentials:
        try:
            decoded = base64.b64decode(credentials, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise _auth_error("Invalid authorization format")
        _, _, token = decoded.partition(":")
        if token:
            return token

    raise _auth_error("Invalid authorization format")


async def get_current_account(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> CurrentAccount:
    """
    Dependency to get the authenticated account from a JWT.

    Tokens are issued by the accounts service; here they are only verified
    (HS256 with JWT_SECRET) and read for the accountSid claim.

    Raises:
        HTTPException: 401 if the header is missing or the token is invalid
    """
    if not authorization:
        raise _auth_error("No authorization header provided")

    token = _extract_token(authorization)

    if not settings.jwt_secret:
        raise _auth_error("Token verification is not configured")

    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise _auth_error("Authentication token has expired", code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise _auth_error("Invalid authentication token", code="INVALID_TOKEN")

    account_sid = payload.get("accountSid") or payload.get("account_sid")
    if not account_sid:
        raise _auth_error("Token carries no account", code="INVALID_TOKEN")

    return CurrentAccount(
        account_sid=account_sid,
        user_id=payload.get("id") or payload.get("sub"),
        email=payload.get("email"),
    )


async def require_account_access(
    account_sid: str = Path(..., description="Account SID from the URL"),
    current_account: CurrentAccount = Depends(get_current_account),
) -> CurrentAccount:
    """
    Ensure the account in the URL is the authenticated one.

    Raises:
        HTTPException: 403 on mismatch
    """
    if account_sid != current_account.account_sid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "AUTHORIZATION_ERROR", "message": "Access denied to this account"},
        )
    return current_account
