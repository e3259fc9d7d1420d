from __future__ import annotations

from typing import Any, Protocol


class TokenCodec(Protocol):
    """Port for signing and verifying access, refresh and license tokens.

    Access and refresh tokens carry ``{id, email, sessionId}`` plus the
    codec's ``jti``/``iat``/``exp``; they are signed with distinct secrets so
    one can never be replayed as the other. License tokens are signed
    asymmetrically and are verified by a separate relying party.
    """

    def issue_access_token(self, claims: dict[str, Any]) -> str: ...

    def issue_refresh_token(self, claims: dict[str, Any]) -> str: ...

    def issue_license_token(self, claims: dict[str, Any], signing_key: str) -> str: ...

    def verify_access_token(self, token: str) -> dict[str, Any]: ...

    def verify_refresh_token(self, token: str) -> dict[str, Any]: ...

    def new_jti(self) -> str: ...

    def generate_code(self, nbytes: int) -> str: ...

    def hash_refresh_token(self, token: str) -> str: ...
