# storefront/utils/identity.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from jose import jwt, JWTError

from storefront.config import Settings, get_settings
from storefront.utils.errors import Unauthenticated

logger = logging.getLogger(__name__)


class IdentityVerifier:
    """Validates access tokens issued by the identity service.

    Tokens are HS256 JWTs signed with the service's JWT secret; the ``sub``
    claim is the stable user identifier.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", audience: Optional[str] = None):
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def verify_header(self, authorization: Optional[str]) -> str:
        if not authorization or not authorization.startswith("Bearer "):
            raise Unauthenticated()
        return self.verify_token(authorization[len("Bearer "):].strip())

    def verify_token(self, token: str) -> str:
        if not token:
            raise Unauthenticated()
        options = {"verify_aud": self.audience is not None}
        try:
            payload = jwt.decode(
                token, self.secret, algorithms=[self.algorithm], audience=self.audience, options=options
            )
        except JWTError as e:
            # Token contents are never logged
            logger.info("Rejected access token: %s", type(e).__name__)
            raise Unauthenticated("Invalid or expired session. Please sign in again.")

        user_id = payload.get("sub")
        if not isinstance(user_id, str) or not user_id:
            raise Unauthenticated("Invalid or expired session. Please sign in again.")
        return user_id


def get_identity_verifier(settings: Settings = Depends(get_settings)) -> IdentityVerifier:
    return IdentityVerifier(settings.JWT_SECRET, settings.JWT_ALGORITHM, settings.JWT_AUDIENCE)


# Resolve the authenticated user id from the Authorization header
def get_current_user_id(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> str:
    return verifier.verify_header(authorization)


# Issue an access token the way the identity service does (local development and tests)
def create_access_token(user_id: str, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode = {"sub": user_id, "exp": expire}
    if settings.JWT_AUDIENCE:
        to_encode["aud"] = settings.JWT_AUDIENCE
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
