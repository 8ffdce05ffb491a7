"""
Token Issuer

Generates unguessable retrieval tokens that are not already registered.
"""

from typing import Callable

from quickshare.domain.errors import ShareConflictError

from .value_objects import ShareToken


class TokenIssuer:
    """
    Issues fresh share tokens.

    The only shared state is the random source; the `exists` check lets the
    issuer redraw when a token is already present in the registry.
    """

    def __init__(self, exists: Callable[[str], bool], max_attempts: int = 5):
        """
        Args:
            exists: Callable returning True when a token is already registered
            max_attempts: Draws before giving up with ShareConflictError
        """
        self._exists = exists
        self._max_attempts = max_attempts

    def issue(self) -> str:
        """
        Draw a token not currently present in the registry.

        Raises:
            ShareConflictError: If every draw collided
        """
        for _ in range(self._max_attempts):
            token = ShareToken.generate().value
            if not self._exists(token):
                return token
        raise ShareConflictError(
            f"Could not issue a unique token after {self._max_attempts} attempts"
        )
