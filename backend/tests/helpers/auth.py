"""Authentication helpers for tests."""

from __future__ import annotations


def access_token_for(services, user) -> str:
    """Open a session for ``user`` and return its access token.

    Going through the service keeps the test client's cookie jar empty, so
    the ``Authorization`` header is what the API sees.
    """

    return services.auth.sign_in(user.id).access_token
