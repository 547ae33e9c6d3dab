"""Observer dispatch via pluggy + ThreadPoolExecutor.

Hooks fire in a worker thread so a slow observer never holds up the event
loop driving the run.  ``--sync`` (or ``sync=True``) dispatches inline,
which tests rely on.

INVARIANT: Plugin failures are warnings, never errors.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from rendergraph.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class EventBus:
    """Async (thread-pool) or synchronous hook dispatch.

    Parameters:
        plugin_manager: Loaded PluginManager for hook dispatch.
        sync: Force synchronous dispatch (useful for testing / ``--sync``).
        max_workers: ThreadPoolExecutor worker count.
    """

    def __init__(
        self,
        plugin_manager: PluginManager,
        *,
        sync: bool = False,
        max_workers: int = 2,
    ) -> None:
        self._pm = plugin_manager
        self._sync = sync
        self._executor: ThreadPoolExecutor | None = (
            None if sync else ThreadPoolExecutor(max_workers=max_workers)
        )
        self._futures: list[Future[bool]] = []
        self._failures: list[str] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def dispatch(self, hook_name: str, payload: dict[str, Any]) -> None:
        """Fire *hook_name* with *payload* (async unless ``sync``)."""
        if self._sync or self._executor is None:
            self._execute_hook(hook_name, payload)
            return
        future = self._executor.submit(self._execute_hook, hook_name, payload)
        self._futures.append(future)

    def drain(self) -> list[str]:
        """Wait for in-flight hooks; return and reset the failure messages seen so far."""
        self._wait_futures()
        failures, self._failures = self._failures, []
        return failures

    def shutdown(self) -> None:
        """Shutdown ThreadPoolExecutor, waiting for pending tasks."""
        self._wait_futures()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _execute_hook(self, hook_name: str, payload: dict[str, Any]) -> bool:
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            return True
        try:
            hook_fn(**payload)
        except Exception as exc:
            logger.warning("Hook %s failed: %s", hook_name, exc)
            self._failures.append(f"Hook {hook_name} failed: {exc}")
            return False
        return True

    def _wait_futures(self) -> None:
        for future in self._futures:
            # _execute_hook already records its own failures.
            future.result(timeout=30)
        self._futures.clear()
