"""Rotating pool of API credentials.

Spreads requests over several keys and sidelines a key that ran out of
quota (or was rejected) until its cooldown expires.
"""

import random
import time
from typing import Callable, Iterable, Optional, TypeVar

from loguru import logger

from .exceptions import (
    AuthenticationError,
    CredentialsExhaustedError,
    QuotaExceededError,
)

T = TypeVar("T")


class CredentialPool:
    """Round-robin and random selection among credentials with cooldowns."""

    def __init__(
        self,
        credentials: Iterable[str],
        cooldown_seconds: float = 3600,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        # Preserve order, drop blanks and duplicates
        self._credentials = list(dict.fromkeys(c for c in credentials if c))
        self.cooldown_seconds = cooldown_seconds
        self._rng = rng or random.Random()
        self._clock = clock
        self._cursor = 0
        self._exhausted_until: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._credentials)

    def _is_available(self, credential: str) -> bool:
        until = self._exhausted_until.get(credential)
        if until is None:
            return True
        if self._clock() >= until:
            del self._exhausted_until[credential]
            return True
        return False

    @property
    def available(self) -> list[str]:
        return [c for c in self._credentials if self._is_available(c)]

    @property
    def exhausted(self) -> bool:
        return not self.available

    def next(self) -> str:
        """Next available credential in round-robin order.

        Raises:
            CredentialsExhaustedError: If every credential is cooling down
        """
        for _ in range(len(self._credentials)):
            credential = self._credentials[self._cursor % len(self._credentials)]
            self._cursor = (self._cursor + 1) % len(self._credentials)
            if self._is_available(credential):
                return credential
        raise CredentialsExhaustedError("No API credential available")

    def random(self, exclude: Optional[str] = None) -> str:
        """Random available credential, avoiding ``exclude`` when possible.

        Raises:
            CredentialsExhaustedError: If no other credential is available
        """
        candidates = [c for c in self.available if c != exclude]
        if not candidates:
            raise CredentialsExhaustedError("No alternative API credential available")
        return self._rng.choice(candidates)

    def mark_exhausted(self, credential: str) -> None:
        """Sideline a credential until its cooldown expires."""
        self._exhausted_until[credential] = self._clock() + self.cooldown_seconds
        logger.warning(
            f"API credential ...{credential[-4:]} sidelined for {self.cooldown_seconds}s "
            f"({len(self.available)}/{len(self._credentials)} left)"
        )

    def call(self, func: Callable[[str], T]) -> T:
        """Call ``func(credential)``, retrying once with a different credential.

        Quota and authentication failures sideline the credential that caused
        them. Other errors propagate without a retry.
        """
        credential = self.next()
        try:
            return func(credential)
        except (QuotaExceededError, AuthenticationError) as e:
            self.mark_exhausted(credential)
            try:
                retry_credential = self.random(exclude=credential)
            except CredentialsExhaustedError:
                raise e
            logger.info("Retrying request with a different API credential")
            try:
                return func(retry_credential)
            except (QuotaExceededError, AuthenticationError):
                self.mark_exhausted(retry_credential)
                raise
