"""Block tick source for the watch loop."""

from __future__ import annotations

import time
from typing import Callable, Iterator

from oracle_arb.utils.logging import get_logger


class BlockTicker:
    """Poll the chain head and yield each newly observed block number.

    Heads that arrive while the consumer is busy collapse into the newest,
    so a slow cycle never builds a backlog.
    """

    def __init__(
        self,
        head: Callable[[], int],
        *,
        interval_sec: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._head = head
        self._interval_sec = interval_sec
        self._sleep = sleep
        self._last_seen: int | None = None
        self._logger = get_logger("oracle_arb.data.blocks")

    @property
    def last_seen(self) -> int | None:
        return self._last_seen

    def poll(self) -> int | None:
        """Return the head if it advanced since the previous poll."""
        head = int(self._head())
        if self._last_seen is not None and head <= self._last_seen:
            return None
        if self._last_seen is not None and head > self._last_seen + 1:
            self._logger.debug(
                "blocks_skipped",
                previous=self._last_seen,
                head=head,
                skipped=head - self._last_seen - 1,
            )
        self._last_seen = head
        return head

    def __iter__(self) -> Iterator[int]:
        while True:
            try:
                block_number = self.poll()
            except Exception as exc:  # noqa: BLE001 - a failed head poll must not end the loop.
                self._logger.warning("head_poll_failed", error=str(exc))
                block_number = None
            if block_number is not None:
                yield block_number
                continue
            self._sleep(self._interval_sec)
