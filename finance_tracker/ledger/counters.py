"""
Atomic counter adjustment over a table without transactions.

PostgREST runs one statement per request, so "read the total, add to it,
write it back" is a race between two tabs of the same user. The update
is made conditional on the value we read (compare-and-swap):

    UPDATE table SET column = observed + delta
    WHERE id = :id AND column = :observed

An empty result means someone else moved the value first; we read it
again and retry, up to max_attempts.
"""

from typing import Optional

import structlog

from finance_tracker.services.storage import Row, TableStorageInterface


logger = structlog.get_logger(__name__)


class ContentionError(Exception):
    """The value kept changing under us for every attempt."""

    def __init__(self, table: str, row_id: str, column: str, attempts: int):
        self.table = table
        self.row_id = row_id
        self.column = column
        self.attempts = attempts
        super().__init__(
            f"{table}.{column} of {row_id} changed concurrently on {attempts} attempts"
        )


async def add_to_column(
    storage: TableStorageInterface,
    table: str,
    row_id: str,
    column: str,
    delta: int,
    max_attempts: int = 5,
    floor: Optional[int] = 0,
) -> Row:
    """
    Add `delta` to an integer column, clamping the result at `floor`.

    Returns:
        The updated row

    Raises:
        NotFoundError: If the row does not exist
        ContentionError: If every attempt lost the race
        StorageError: On any other storage failure
    """
    for attempt in range(1, max_attempts + 1):
        row = await storage.select_one(table, {"id": row_id})
        observed = row.get(column)
        new_value = (observed or 0) + delta
        if floor is not None:
            new_value = max(floor, new_value)

        updated = await storage.update(
            table,
            {column: new_value},
            {"id": row_id, column: observed},
        )
        if updated:
            return updated[0]

        logger.info(
            "counter_update_contended",
            table=table,
            row_id=row_id,
            column=column,
            attempt=attempt,
        )

    raise ContentionError(table, row_id, column, max_attempts)
