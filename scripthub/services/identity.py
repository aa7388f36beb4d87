"""
Identity Verification - Firebase ID tokens via google-auth.

Only verifies who the caller is; roles come from the document store.
"""

import asyncio
import time
from dataclasses import dataclass

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from structlog import get_logger

from scripthub.exceptions import AuthenticationError, IdentityProviderError

logger = get_logger(__name__)

_MAX_CACHE_SIZE = 10000


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller taken from a verified ID token."""

    uid: str
    email: str | None = None


class FirebaseTokenVerifier:
    """
    Verifies Firebase ID tokens for one project.

    Verified tokens are cached until shortly before they expire so repeated
    requests skip the signature check.
    """

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        self._request = google_requests.Request()
        self._cache: dict[str, tuple[CallerIdentity, float]] = {}

    async def verify(self, token: str) -> CallerIdentity:
        """
        Verify token and return the caller.

        Raises:
            AuthenticationError: bad signature, wrong project, expired, no subject
            IdentityProviderError: Google's signing keys could not be fetched
        """
        cached = self._cache.get(token)
        if cached is not None:
            identity, expiry = cached
            if time.time() < expiry:
                return identity
            del self._cache[token]

        if not self.project_id:
            raise AuthenticationError("no Firebase project configured")

        try:
            claims = await asyncio.to_thread(
                id_token.verify_firebase_token, token, self._request, self.project_id
            )
        except google_exceptions.TransportError as e:
            logger.error("identity_provider_unreachable", error=str(e))
            raise IdentityProviderError(str(e)) from e
        except (ValueError, google_exceptions.GoogleAuthError) as e:
            logger.info("id_token_rejected", error=str(e))
            raise AuthenticationError(str(e)) from e

        if not claims:
            raise AuthenticationError("token could not be decoded")

        expected_issuer = f"https://securetoken.google.com/{self.project_id}"
        if claims.get("iss") != expected_issuer:
            raise AuthenticationError(f"unexpected issuer {claims.get('iss')!r}")

        uid = claims.get("sub") or claims.get("user_id")
        if not uid:
            raise AuthenticationError("token has no subject")

        identity = CallerIdentity(uid=uid, email=claims.get("email"))
        self._remember(token, identity, claims.get("exp", time.time() + 3600) - 60)
        return identity

    def _remember(self, token: str, identity: CallerIdentity, expiry: float) -> None:
        if len(self._cache) >= _MAX_CACHE_SIZE:
            now = time.time()
            for stale in [k for k, (_, exp) in self._cache.items() if exp < now]:
                del self._cache[stale]
            if len(self._cache) >= _MAX_CACHE_SIZE:
                soonest = min(self._cache, key=lambda k: self._cache[k][1])
                del self._cache[soonest]
        self._cache[token] = (identity, expiry)
