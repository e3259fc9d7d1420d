"""
licensegate.services._shared.ports
==================================

*Ports* (hexagonal interfaces) the service layer depends on.

Modules
-------
- :mod:`token_codec`:
    Defines :class:`~.TokenCodec`: signing/verification of access, refresh
    and license tokens plus token/code identifiers.

Concrete adapters live under ``licensegate.infra``.
"""

from __future__ import annotations

from .token_codec import TokenCodec

__all__ = ["TokenCodec"]
