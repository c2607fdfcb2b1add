from __future__ import annotations

"""
Ordered strategy chain.

Each strategy is an async callable returning a value or ``None``. The chain
tries them in order and returns the first non-``None`` value together with
the name of the strategy that produced it. A strategy that raises is logged
and skipped; ``ConfigurationFailure`` is never swallowed.
"""

from typing import Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from loguru import logger

from .errors import ConfigurationFailure

T = TypeVar("T")

Strategy = Callable[..., Awaitable[Optional[T]]]


class FallbackChain(Generic[T]):
    def __init__(self, name: str, strategies: Sequence[Tuple[str, Strategy]]):
        self.name = name
        self._strategies: List[Tuple[str, Strategy]] = list(strategies)

    def __len__(self) -> int:
        return len(self._strategies)

    @property
    def strategy_names(self) -> List[str]:
        return [n for n, _ in self._strategies]

    async def run(self, *args, **kwargs) -> Tuple[Optional[T], Optional[str]]:
        for label, strategy in self._strategies:
            try:
                result = await strategy(*args, **kwargs)
            except ConfigurationFailure:
                raise
            except Exception as e:
                logger.warning("{}: strategy {} failed: {}", self.name, label, e)
                continue
            if result is not None:
                return result, label
            logger.debug("{}: strategy {} gave nothing", self.name, label)
        return None, None
