"""
Exception taxonomy for starksign.

  - MalformedField         bad numeric / field-element input (a ValueError)
  - DerivationUnavailable  the wallet refused or could not produce the challenge signature
  - DerivationExhausted    key grinding did not converge (integrity fault)
  - SigningFailure         the curve signature routine rejected the digest
"""

from __future__ import annotations


class StarkSignError(Exception):
    """Base class for derivation and signing failures."""


class MalformedField(ValueError):
    """Text or value that is not a valid field element."""


class DerivationUnavailable(StarkSignError):
    """The wallet capability refused or failed to sign the derivation challenge.

    Recoverable: the caller may retry after user action.
    """


class DerivationExhausted(StarkSignError):
    """Key grinding did not land in the curve order within the attempt bound."""


class SigningFailure(StarkSignError):
    """The digest cannot be signed with the derived key."""
