"""
Provider fallback chain
Tries an ordered list of providers until one succeeds
"""

import asyncio
from typing import Awaitable, Callable, Dict, Generic, Hashable, List, Sequence, Tuple, TypeVar, Union

from ..utils import get_logger
from .base import AllProvidersFailedError

logger = get_logger(__name__)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

ProviderCall = Callable[[str], Awaitable[T]]


class FallbackChain(Generic[T]):
    """
    Ordered providers tried in sequence for a single key

    The first success wins. Failures are logged and absorbed; if every
    provider fails, AllProvidersFailedError is raised carrying each attempt,
    with the last provider's error chained as the cause. Nothing about a
    failed run is remembered, so the next call starts again at provider 1.
    """

    def __init__(self, name: str, providers: Sequence[Tuple[str, ProviderCall]]):
        self.name = name
        self.providers: List[Tuple[str, ProviderCall]] = list(providers)

    async def run(self, key: str) -> T:
        attempts: List[Tuple[str, Exception]] = []

        for provider_name, call in self.providers:
            try:
                result = await call(key)
            except Exception as e:
                logger.warning(f"{self.name}: {provider_name} failed for {key}: {e}")
                attempts.append((provider_name, e))
                continue

            if attempts:
                logger.info(
                    f"{self.name}: {provider_name} served {key} after "
                    f"{len(attempts)} failed provider(s)"
                )
            return result

        error = AllProvidersFailedError(key, attempts)
        if error.last_error is not None:
            raise error from error.last_error
        raise error


async def gather_independent(
    keys: Sequence[K],
    fetch: Callable[[K], Awaitable[T]]
) -> Dict[K, Union[T, Exception]]:
    """
    Run fetch(key) for every key concurrently

    Each key succeeds or fails on its own; the result maps every requested
    key to either its value or the exception it raised.
    """
    unique_keys = list(dict.fromkeys(keys))
    results = await asyncio.gather(
        *(fetch(key) for key in unique_keys),
        return_exceptions=True
    )

    outcome: Dict[K, Union[T, Exception]] = {}
    for key, result in zip(unique_keys, results):
        if isinstance(result, BaseException) and not isinstance(result, Exception):
            # Cancellation and interpreter exits are not per-key failures
            raise result
        outcome[key] = result
    return outcome
