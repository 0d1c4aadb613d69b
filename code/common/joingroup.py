# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, List

logger = logging.getLogger("dashboard.joingroup")


class JoinGroup:
    """
    Fan out a batch of coroutines and join them at a single barrier.

    - go(coro) starts a task and returns its slot index.
    - wait() returns every result, ordered by slot.
    - The first failure (earliest slot among the tasks that have failed when
      the barrier trips) is re-raised unchanged; siblings still running are
      cancelled and drained first.
    """

    def __init__(self, label: str = "group"):
        self.label = label
        self._tasks: List[asyncio.Task] = []
        self._joined = False

    def __len__(self) -> int:
        return len(self._tasks)

    def go(self, coro: Awaitable[Any]) -> int:
        if self._joined:
            raise RuntimeError(f"JoinGroup {self.label!r} has already been joined")
        self._tasks.append(asyncio.ensure_future(coro))
        return len(self._tasks) - 1

    async def _drain(self, tasks: List[asyncio.Task]) -> None:
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def wait(self) -> List[Any]:
        self._joined = True
        if not self._tasks:
            return []

        try:
            done, pending = await asyncio.wait(
                self._tasks, return_when=asyncio.FIRST_EXCEPTION
            )
        except asyncio.CancelledError:
            await self._drain([t for t in self._tasks if not t.done()])
            raise

        failed = [
            t
            for t in self._tasks
            if t in done and not t.cancelled() and t.exception() is not None
        ]
        if failed:
            await self._drain(list(pending))
            err = failed[0].exception()
            logger.debug(
                "JoinGroup %s | %d/%d tasks failed, cancelled=%d first=%r",
                self.label,
                len(failed),
                len(self._tasks),
                len(pending),
                err,
            )
            raise err

        return [t.result() for t in self._tasks]
