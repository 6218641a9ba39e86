"""PKCE parameters for the authorization code flow."""

from __future__ import annotations

from dataclasses import dataclass, field

SUPPORTED_CHALLENGE_METHODS = frozenset({"plain"})


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters (RFC 7636).

    MyAnimeList only documents the ``plain`` method, where the challenge is
    the verifier itself.
    """

    code_verifier: str = field()
    code_challenge: str = field()
    code_challenge_method: str = field(default="plain")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if self.code_challenge_method not in SUPPORTED_CHALLENGE_METHODS:
            raise ValueError(
                f"Unsupported code challenge method: {self.code_challenge_method}"
            )
        if self.code_challenge != self.code_verifier:
            raise ValueError("plain code_challenge must equal code_verifier")
