"""Supabase session verification"""

import logging

import jwt

logger = logging.getLogger(__name__)


class SupabaseAuthService:
    """Validate Supabase Auth access tokens (HS256 JWTs)"""

    def __init__(
        self,
        secret_key: str,
        audience: str = "authenticated",
        issuer: str | None = None,
        algorithm: str = "HS256",
    ):
        if not secret_key:
            raise ValueError("Supabase JWT secret cannot be empty")

        self.secret_key = secret_key
        self.audience = audience
        self.issuer = issuer
        self.algorithm = algorithm

    def verify_token(self, token: str) -> dict | None:
        """Verify a session JWT and return the payload if valid"""
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Session token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            return None

        if not payload.get("sub"):
            logger.warning("Session token missing sub")
            return None
        return payload

    def get_user_id(self, token: str) -> str | None:
        payload = self.verify_token(token)
        return str(payload["sub"]) if payload else None
