"""Credential pool with exhaustion tracking and circular rotation.

One entry per configured API key. The pool answers "which key is usable
now", records quota exhaustion, and rotates to the next usable key. Daily
counters are reset lazily the first time the pool is used on a new calendar
day, according to the injected clock.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Deque, Dict, List, Optional, Sequence, Union

from ..core.clock import Clock, SystemClock, current_day
from ..core.exceptions import NoCredentialAvailable

logger = logging.getLogger(__name__)


def mask_secret(secret: str) -> str:
    """Hide all but the last four characters of a secret."""
    return "***" + secret[-4:]


@dataclass
class Credential:
    """A single API key and its usage bookkeeping."""

    id: str
    secret: str
    request_count: int = 0
    quota_exceeded: bool = False
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    active: bool = True

    @property
    def masked(self) -> str:
        return mask_secret(self.secret)

    @property
    def usable(self) -> bool:
        return self.active and not self.quota_exceeded

    def clear(self) -> None:
        self.request_count = 0
        self.quota_exceeded = False
        self.last_error = None


class CredentialPool:
    """
    Ordered credentials with exactly one "current" entry.

    Args:
        secrets: API keys in the order they should be tried
        clock: Clock used for day-boundary resets (defaults to wall clock)
        log_capacity: Number of rotation audit entries kept
    """

    def __init__(
        self,
        secrets: Sequence[str],
        clock: Optional[Clock] = None,
        log_capacity: int = 20,
    ):
        self._clock = clock or SystemClock()
        self._credentials: List[Credential] = [
            Credential(id=f"KEY_{index + 1}", secret=secret)
            for index, secret in enumerate(secrets)
        ]
        self._current_index = 0
        self._total_requests = 0
        self._last_reset_day: date = current_day(self._clock)
        self._rotation_log: Deque[Dict[str, Any]] = deque(maxlen=log_capacity)

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def credentials(self) -> List[Credential]:
        return list(self._credentials)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def total_requests(self) -> int:
        return self._total_requests

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def current(self) -> Credential:
        """
        Return the current credential.

        Raises:
            NoCredentialAvailable: If the pool is empty or no entry is active.
        """
        self.daily_reset()
        if not self._credentials:
            raise NoCredentialAvailable("No API keys configured")

        credential = self._credentials[self._current_index]
        if credential.active:
            return credential

        for index, candidate in enumerate(self._credentials):
            if candidate.active:
                self._current_index = index
                return candidate
        raise NoCredentialAvailable("No active API keys available")

    def record_success(self) -> None:
        """Count one successful request against the current credential."""
        self.daily_reset()
        if not self._credentials:
            return
        self._credentials[self._current_index].request_count += 1
        self._total_requests += 1

    def mark_exhausted(self, cause: Union[BaseException, str, None] = None) -> None:
        """Flag the current credential as out of quota and audit the event."""
        if not self._credentials:
            return

        credential = self._credentials[self._current_index]
        reason = str(cause) if cause else "Quota exceeded"
        now = self._clock.now()

        credential.quota_exceeded = True
        credential.last_error = reason
        credential.last_error_time = now

        logger.warning(f"[{credential.id}] Marked as exhausted: {reason}")
        self._rotation_log.append({
            "timestamp": now.isoformat(),
            "credential": credential.id,
            "reason": reason,
            "request_count": credential.request_count,
        })

    def rotate_next(self) -> bool:
        """
        Move to the next usable credential, scanning forward circularly.

        When every other credential is exhausted, the credential we started
        from is reset and stays current, so callers never deadlock.

        Returns:
            False only if the pool is empty.
        """
        if not self._credentials:
            logger.error("No keys available for rotation")
            return False

        start = self._current_index
        size = len(self._credentials)
        for step in range(1, size):
            index = (start + step) % size
            if self._credentials[index].usable:
                self._current_index = index
                logger.info(
                    f"Rotated from {self._credentials[start].id} to {self._credentials[index].id}"
                )
                return True

        original = self._credentials[start]
        logger.warning(f"All keys exhausted, resetting {original.id} for another attempt")
        original.quota_exceeded = False
        original.request_count = 0
        return True

    def daily_reset(self) -> bool:
        """
        Reset every credential when the calendar day has changed.

        Returns:
            True if a reset happened.
        """
        today = current_day(self._clock)
        if today == self._last_reset_day:
            return False

        for credential in self._credentials:
            credential.clear()
        self._total_requests = 0
        self._current_index = 0
        self._last_reset_day = today
        logger.info(f"Daily credential reset for {today.isoformat()}")
        return True

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def has_available(self) -> bool:
        return any(credential.usable for credential in self._credentials)

    def available_count(self) -> int:
        return sum(1 for credential in self._credentials if credential.usable)

    def active_count(self) -> int:
        return sum(1 for credential in self._credentials if credential.active)

    def usage_stats(self) -> List[Dict[str, Any]]:
        """Per-credential usage with masked secrets."""
        self.daily_reset()
        return [
            {
                "id": credential.id,
                "masked_key": credential.masked,
                "request_count": credential.request_count,
                "quota_exceeded": credential.quota_exceeded,
                "active": credential.active,
                "current": index == self._current_index,
                "last_error": credential.last_error,
                "last_error_time": (
                    credential.last_error_time.isoformat() if credential.last_error_time else None
                ),
            }
            for index, credential in enumerate(self._credentials)
        ]

    def rotation_log(self) -> List[Dict[str, Any]]:
        """Most recent rotation audit entries, oldest first."""
        return list(self._rotation_log)

    def reset(self) -> None:
        """Clear every counter, flag and audit entry."""
        for credential in self._credentials:
            credential.clear()
            credential.last_error_time = None
        self._current_index = 0
        self._total_requests = 0
        self._rotation_log.clear()
