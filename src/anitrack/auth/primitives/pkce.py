"""PKCE (Proof Key for Code Exchange) generation.

Implements RFC 7636 verifier generation for the ``plain`` challenge method,
the only one MyAnimeList documents.
"""

from __future__ import annotations

import secrets
import string

from anitrack.auth.models.errors import AuthError
from anitrack.auth.models.security import PKCEParameters

VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
VERIFIER_LENGTH = 128


class PKCEManager:
    """Generates PKCE parameters for one authorization attempt."""

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization flow.

        Returns:
            PKCEParameters: Immutable parameters for the authorization flow

        Raises:
            AuthError: If parameter generation fails
        """
        try:
            code_verifier = self._generate_code_verifier()
            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=code_verifier,
                code_challenge_method="plain",
            )
        except ValueError as e:
            raise AuthError(f"Failed to generate PKCE parameters: {e}") from e

    def _generate_code_verifier(self) -> str:
        """Generate a cryptographically secure code verifier.

        RFC 7636 Section 4.1: 43-128 characters from the unreserved set
            [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"
        """
        return "".join(
            secrets.choice(VERIFIER_ALPHABET) for _ in range(VERIFIER_LENGTH)
        )
