"""
Sequential article identifiers backed by a persisted counter.

Allocation is a read-increment-write on a single key and is not safe under
concurrent invocation: two simultaneous allocations may return the same
identifier unless the store serializes writes per key.
"""
import logging

from kvblog.kv_accessor import KeyValueAccessor

logger = logging.getLogger(__name__)

COUNTER_KEY = "SYSTEM_INDEX_NUM"
ID_WIDTH = 6


def format_identifier(number: int) -> str:
    """Format a counter value as a zero-padded identifier."""
    return str(number).zfill(ID_WIDTH)


class IdentifierAllocator:
    """Hands out monotonically increasing article identifiers."""

    def __init__(self, accessor: KeyValueAccessor):
        self.accessor = accessor

    def current(self) -> int:
        """Return the last allocated number, 0 if absent or unparseable."""
        raw = self.accessor.get_text(COUNTER_KEY)
        if raw is None:
            return 0
        try:
            return max(int(raw.strip().strip('"')), 0)
        except ValueError:
            logger.warning("Counter %s holds unparseable value %r, treating as 0", COUNTER_KEY, raw)
            return 0

    def allocate(self) -> str:
        """
        Allocate the next identifier.

        Returns:
            6-digit zero-padded identifier, e.g. "000001"

        Raises:
            StoreError: If the new counter value cannot be persisted
        """
        number = self.current() + 1
        self.accessor.put_json(COUNTER_KEY, number)
        return format_identifier(number)

    def observe(self, identifier: str) -> None:
        """
        Advance the counter past an externally supplied identifier.

        Non-numeric identifiers are ignored; the counter never decreases.
        """
        try:
            number = int(identifier)
        except (TypeError, ValueError):
            return
        if number > self.current():
            self.accessor.put_json(COUNTER_KEY, number)
