from dataclasses import dataclass

import httpx
from jose import JWTError, jwt

from studia.core.errors import UnauthorizedError
from studia.core.logging_config import get_logger

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"


@dataclass(frozen=True)
class VerifiedIdentity:
    user_id: str
    email: str | None = None


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Malformed Authorization header")
    return token.strip()


class IdentityVerifier:
    """Turns a caller's bearer token into a verified user id.

    With a JWT secret configured the token is checked locally; otherwise it is
    exchanged with the auth backend's user endpoint.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        supabase_url: str,
        anon_key: str = "",
        jwt_secret: str = "",
    ):
        self.http_client = http_client
        self.supabase_url = supabase_url.rstrip("/")
        self.anon_key = anon_key
        self.jwt_secret = jwt_secret

    async def verify(self, authorization: str | None) -> VerifiedIdentity:
        token = extract_bearer_token(authorization)
        if self.jwt_secret:
            return self._verify_locally(token)
        return await self._verify_remotely(token)

    def _verify_locally(self, token: str) -> VerifiedIdentity:
        try:
            payload = jwt.decode(
                token, self.jwt_secret, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE
            )
        except JWTError as e:
            logger.info(f"Rejected bearer token: {e}")
            raise UnauthorizedError("Invalid or expired session token")
        user_id = payload.get("sub")
        if not user_id:
            raise UnauthorizedError("Session token has no subject")
        return VerifiedIdentity(user_id=user_id, email=payload.get("email"))

    async def _verify_remotely(self, token: str) -> VerifiedIdentity:
        if not self.supabase_url:
            logger.error("SUPABASE_URL not configured; cannot verify session")
            raise UnauthorizedError("Session verification is not configured")

        headers = {"Authorization": f"Bearer {token}"}
        if self.anon_key:
            headers["apikey"] = self.anon_key
        try:
            resp = await self.http_client.get(f"{self.supabase_url}/auth/v1/user", headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"Session verification request failed: {e}")
            raise UnauthorizedError("Could not verify session")

        if resp.status_code != 200:
            logger.info(f"Auth backend rejected token | status={resp.status_code}")
            raise UnauthorizedError("Invalid or expired session token")

        try:
            user = resp.json()
        except ValueError:
            logger.warning(f"Auth backend sent a non-JSON body | body={resp.text[:200]}")
            raise UnauthorizedError("Could not verify session")
        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            raise UnauthorizedError("Invalid or expired session token")
        return VerifiedIdentity(user_id=user_id, email=user.get("email"))
