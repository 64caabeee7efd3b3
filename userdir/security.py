"""Request authentication for the user directory API."""
from __future__ import annotations

import hashlib
import hmac
from typing import Iterable, List

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer


def _token_digest(token: str) -> bytes:
    return hashlib.sha256(token.encode("utf-8")).digest()


class TokenAuth:
    """Guard user management routes with static bearer tokens.

    Only SHA-256 digests of the configured tokens are kept, and a presented
    token is compared digest to digest so that its length is not observable.
    """

    def __init__(self, tokens: Iterable[str]):
        digests: List[bytes] = [_token_digest(token.strip()) for token in tokens if token.strip()]
        if not digests:
            raise ValueError("At least one API token must be provided")
        self._digests = digests
        self._bearer = HTTPBearer(auto_error=False)

    def accepts(self, token: str) -> bool:
        presented = _token_digest(token)
        matched = False
        for digest in self._digests:
            matched |= hmac.compare_digest(presented, digest)
        return matched

    async def __call__(self, request: Request) -> None:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing bearer token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not self.accepts(credentials.credentials):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API token")


__all__ = ["TokenAuth"]
