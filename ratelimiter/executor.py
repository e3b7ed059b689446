"""
Atomic check executor.

Runs the ``rateCheck`` script against the shard holding a key. The script is
registered once per store; callers that arrive while a registration is in
flight wait on that same registration.
"""

import asyncio
import functools
from typing import Dict, Optional, Tuple

from shared.errors import ScriptNotLoaded
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .scripts import RATE_CHECK_SCRIPT
from .store import BucketStore


class AtomicCheckExecutor:
    """Evaluates the read-decay-compare-write sequence as one store-side unit."""

    def __init__(self, script: str = RATE_CHECK_SCRIPT, metrics: Optional[MetricsCollector] = None):
        self.script = script
        self.metrics = metrics
        self.logger = get_logger("ratelimiter.executor")
        self._registrations: Dict[BucketStore, "asyncio.Future[str]"] = {}

    async def initialize(self, store: BucketStore) -> str:
        """Register the script with ``store`` and return its SHA.

        The first caller starts the registration and later callers share its
        outcome. A failed registration is not remembered: every waiter sees
        the error and the next call starts over.
        """
        pending = self._registrations.get(store)
        if pending is None or pending.cancelled():
            pending = asyncio.ensure_future(self._register(store))
            pending.add_done_callback(functools.partial(self._registration_done, store))
            self._registrations[store] = pending

        try:
            # Shielded so one cancelled waiter does not cancel the others
            return await asyncio.shield(pending)
        except Exception:
            if self._registrations.get(store) is pending:
                del self._registrations[store]
            raise

    async def run(
        self,
        store: BucketStore,
        key: str,
        now_ms: int,
        rate: float,
        burst: int,
        op_count: int = 1,
    ) -> bool:
        """Record ``op_count`` operations on ``key`` unless that would exceed ``burst``.

        Returns True when admitted (state and expiry written) and False when
        rejected (nothing written). Store errors propagate unchanged.
        """
        admitted, _ = await self.evaluate(store, key, now_ms, rate, burst, op_count)
        return admitted

    async def evaluate(
        self,
        store: BucketStore,
        key: str,
        now_ms: int,
        rate: float,
        burst: int,
        op_count: int = 1,
    ) -> Tuple[bool, int]:
        """Like ``run`` but also returns the post-decay count the check produced."""
        args = (now_ms, rate, burst, op_count)
        sha = await self.initialize(store)

        try:
            result = await store.run_script(sha, [key], args)
        except ScriptNotLoaded:
            # The store restarted or flushed its script cache
            self.forget(store, sha)
            sha = await self.initialize(store)
            result = await store.run_script(sha, [key], args)

        admitted, count = result
        return int(admitted) == 1, int(count)

    def forget(self, store: BucketStore, sha: Optional[str] = None) -> None:
        """Drop the cached registration for ``store`` (only if it is ``sha``, when given)."""
        pending = self._registrations.get(store)
        if pending is None or not pending.done():
            return
        if pending.cancelled() or pending.exception() is not None:
            del self._registrations[store]
            return
        if sha is None or pending.result() == sha:
            del self._registrations[store]

    def is_initialized(self, store: BucketStore) -> bool:
        pending = self._registrations.get(store)
        return (
            pending is not None
            and pending.done()
            and not pending.cancelled()
            and pending.exception() is None
        )

    def _registration_done(self, store: BucketStore, pending: "asyncio.Future[str]") -> None:
        # Retrieves the error even when every waiter was cancelled
        if pending.cancelled() or pending.exception() is not None:
            if self._registrations.get(store) is pending:
                del self._registrations[store]

    async def _register(self, store: BucketStore) -> str:
        try:
            sha = await store.load_script(self.script)
        except Exception as e:
            self.logger.error("Rate check script registration failed", store=store.name, error=str(e))
            self._record_load("error")
            raise

        self.logger.info("Rate check script registered", store=store.name, sha=sha)
        self._record_load("ok")
        return sha

    def _record_load(self, status: str) -> None:
        if self.metrics is not None:
            self.metrics.record_script_load(status)
