from __future__ import annotations

from collections.abc import Iterable


def has_role(*, actor_role, allowed: Iterable) -> bool:
    """Return True if the actor's role is one of ``allowed``."""
    return str(getattr(actor_role, "value", actor_role)) in {
        str(getattr(role, "value", role)) for role in allowed
    }
