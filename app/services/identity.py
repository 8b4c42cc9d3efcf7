from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import InvalidTokenError
from sqlmodel import SQLModel

from app.core.config import settings


class CallerIdentity(SQLModel):
    """
    The organization on whose behalf a request is made.
    Example: organization='Org3MSP'
    """
    organization: str
    subject: Optional[str] = None

    def current_organization(self) -> str:
        return self.organization


class IdentityService:
    """Issues and verifies organization-scoped bearer tokens."""
    ALGORITHM = "HS256"
    TOKEN_TYPE = "access"

    def __init__(self, secret_key: str = settings.secret_key):
        self.secret_key = secret_key

    def create_access_token(
        self,
        organization: str,
        subject: Optional[str] = None,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        expires_delta = expires_delta or timedelta(
            minutes=settings.access_token_expire_minutes)
        to_encode = {
            "sub": subject or organization,
            "org": organization,
            "exp": datetime.now(timezone.utc) + expires_delta,
            "type": self.TOKEN_TYPE
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.ALGORITHM)

    def verify_access_token(self, token: str) -> CallerIdentity:
        """
        Decodes the token and returns the caller.
        Raises InvalidTokenError for bad signatures, expiry or a missing org claim.
        """
        payload = jwt.decode(token, self.secret_key,
                             algorithms=[self.ALGORITHM])

        if payload.get("type") != self.TOKEN_TYPE:
            raise InvalidTokenError("Unexpected token type.")

        organization = payload.get("org")
        if not organization:
            raise InvalidTokenError("Token carries no organization.")

        return CallerIdentity(organization=organization, subject=payload.get("sub"))
