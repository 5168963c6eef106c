import logging
from typing import Any, Awaitable, Callable, List, Tuple

logger = logging.getLogger(__name__)


class PostCommitHooks:
    """
    Side effects queued while handling a request and run once the primary
    write is committed. A failing hook is logged and never reaches the
    caller.
    """

    def __init__(self):
        self._hooks: List[Tuple[Callable[..., Awaitable[Any]], tuple, dict]] = []

    def add(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> None:
        self._hooks.append((func, args, kwargs))

    def __len__(self) -> int:
        return len(self._hooks)

    async def run(self) -> int:
        """Run and clear the queued hooks. Returns how many failed."""
        hooks, self._hooks = self._hooks, []
        failed = 0
        for func, args, kwargs in hooks:
            try:
                await func(*args, **kwargs)
            except Exception:
                failed += 1
                logger.exception(
                    f"Post-commit hook {getattr(func, '__qualname__', func)} failed"
                )
        return failed
