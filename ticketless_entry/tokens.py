"""
Ticket token generation

Tokens are SHA-256 digests of the member id, the row position and the
current time. Uniqueness is probabilistic: two calls in the same
nanosecond for the same id and row would collide.
"""

import hashlib
import time
from typing import Callable


class TokenGenerator:
    """Derives opaque ticket tokens"""

    def __init__(self, clock: Callable[[], int] = time.time_ns):
        """
        Initialize token generator

        Args:
            clock: Returns the current time in nanoseconds
        """
        self.clock = clock

    def generate(self, member_id: str, row_position: int) -> str:
        """
        Generate a token for a new attendee row

        Args:
            member_id: Attendee member id
            row_position: Row position of the attendee in the store

        Returns:
            64-character hex string
        """
        seed = f"{member_id}-{row_position}-{self.clock()}"
        return hashlib.sha256(seed.encode("utf-8")).hexdigest()
