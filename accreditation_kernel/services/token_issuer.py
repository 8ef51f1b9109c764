"""
TokenIssuer -- unique QR token generation.

Responsibility:
    Produces a cryptographically random token not currently held by any
    record and binds it to a record in one step.

Architecture position:
    Kernel > Services.  Called by StatusStateMachine on approve and
    reinstate.

Invariants enforced:
    - Tokens carry at least 16 random bytes (32 hex characters).
    - A token is never reused: each approve/reinstate draws a fresh one.
    - At most MAX_ATTEMPTS candidates are tried per issuance.

Concurrency:
    The existence pre-check is a fast path only.  The UNIQUE constraint on
    ``accreditations.qr_token`` is the guarantee: each bind attempt runs in a
    SAVEPOINT, and a qr_token uniqueness violation rolls back just that
    savepoint and counts as a collision.

Failure modes:
    - TokenExhaustedError after MAX_ATTEMPTS collisions.
    - InvalidTokenSettingsError when configured below 16 bytes or with
      fewer than one attempt.
    - Any other error raised by ``bind`` (including unrelated
      IntegrityErrors) propagates unchanged.
"""

import secrets
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from accreditation_kernel.exceptions import InvalidTokenSettingsError, TokenExhaustedError
from accreditation_kernel.logging_config import get_logger
from accreditation_kernel.repositories.base import AccreditationRepository

logger = get_logger("services.token_issuer")

MAX_ATTEMPTS = 10
MIN_TOKEN_BYTES = 16

T = TypeVar("T")


def validate_token_settings(num_bytes: int, max_attempts: int) -> None:
    if num_bytes < MIN_TOKEN_BYTES:
        raise InvalidTokenSettingsError("num_bytes", num_bytes, MIN_TOKEN_BYTES)
    if max_attempts < 1:
        raise InvalidTokenSettingsError("max_attempts", max_attempts, 1)


def _is_token_collision(exc: IntegrityError) -> bool:
    return "qr_token" in str(exc.orig) or "uq_accreditations_qr_token" in str(exc)


class TokenIssuer:
    """
    Issues unique QR tokens.

    Contract:
        ``issue(bind)`` calls ``bind(token)`` with a fresh candidate until one
        sticks, and returns ``(token, bind_result)``.
    """

    def __init__(
        self,
        session: Session,
        repository: AccreditationRepository,
        token_factory: Callable[[int], str] | None = None,
        num_bytes: int = MIN_TOKEN_BYTES,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        validate_token_settings(num_bytes, max_attempts)
        self.session = session
        self.repository = repository
        self._token_factory = token_factory or secrets.token_hex
        self._num_bytes = num_bytes
        self._max_attempts = max_attempts

    def generate(self) -> str:
        return self._token_factory(self._num_bytes)

    def issue(self, bind: Callable[[str], T]) -> tuple[str, T]:
        for attempt in range(1, self._max_attempts + 1):
            candidate = self.generate()

            if self.repository.token_exists(candidate):
                logger.warning("qr_token_collision", extra={"attempt": attempt, "stage": "precheck"})
                continue

            try:
                with self.session.begin_nested():
                    result = bind(candidate)
            except IntegrityError as exc:
                if not _is_token_collision(exc):
                    raise
                logger.warning("qr_token_collision", extra={"attempt": attempt, "stage": "constraint"})
                continue

            logger.debug("qr_token_issued", extra={"attempt": attempt})
            return candidate, result

        logger.error("qr_token_exhausted", extra={"attempts": self._max_attempts})
        raise TokenExhaustedError(self._max_attempts)
