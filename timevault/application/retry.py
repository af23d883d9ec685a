"""Política de novas tentativas e controle de admissão para chamadas externas."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
    wait_incrementing,
    wait_random,
)
from tenacity.wait import wait_base

from timevault.domain.errors import TransientUpstreamError
from timevault.settings import BackoffType, ResolverSettings

log = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class wait_capped(wait_base):
    """Limita o resultado de outra estratégia de espera a ``maximum`` segundos."""

    def __init__(self, wait: wait_base, maximum: float) -> None:
        self.wait = wait
        self.maximum = maximum

    def __call__(self, retry_state: RetryCallState) -> float:
        return max(0.0, min(self.maximum, self.wait(retry_state)))


def build_wait_strategy(
    backoff: BackoffType, base_delay: float, max_delay: float, jitter: bool
) -> wait_base:
    """Monta a estratégia de espera do tenacity para a configuração informada.

    - ``fixed``: ``base``
    - ``linear``: ``base * tentativa``
    - ``exponential``: ``base * 2 ** (tentativa - 1)``

    Com ``jitter`` soma-se ``uniform(0, base)``. O total nunca passa de
    ``max_delay``.
    """

    if backoff is BackoffType.FIXED:
        strategy: wait_base = wait_fixed(base_delay)
    elif backoff is BackoffType.LINEAR:
        strategy = wait_incrementing(start=base_delay, increment=base_delay)
    else:
        strategy = wait_exponential(multiplier=base_delay, exp_base=2)
    if jitter and base_delay > 0:
        strategy = strategy + wait_random(0, base_delay)
    return wait_capped(strategy, max_delay)


class RetryPolicy:
    """Executa chamadas externas com timeout, backoff e portão de admissão."""

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 10.0,
        backoff: BackoffType = BackoffType.EXPONENTIAL,
        jitter: bool = True,
        call_timeout: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts deve ser maior que zero")
        self.max_attempts = max_attempts
        self.call_timeout = call_timeout
        self.wait = build_wait_strategy(backoff, base_delay, max_delay, jitter)
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, settings: ResolverSettings, *, sleep: Sleep = asyncio.sleep
    ) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            backoff=settings.retry_backoff,
            jitter=settings.retry_jitter,
            call_timeout=settings.call_timeout,
            sleep=sleep,
        )

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        gate: Optional[asyncio.Semaphore] = None,
        description: str = "chamada externa",
    ) -> T:
        """Executa ``operation`` repetindo falhas transitórias.

        O portão é adquirido a cada tentativa e liberado durante a espera.
        Um timeout conta como tentativa falha. Esgotadas as tentativas, a
        última :class:`TransientUpstreamError` é propagada; outras exceções
        são propagadas imediatamente.
        """

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type(TransientUpstreamError),
            before_sleep=before_sleep_log(log, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if gate is None:
                    return await self._attempt(operation, description)
                async with gate:
                    return await self._attempt(operation, description)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _attempt(
        self, operation: Callable[[], Awaitable[T]], description: str
    ) -> T:
        try:
            return await asyncio.wait_for(operation(), timeout=self.call_timeout)
        except asyncio.TimeoutError as exc:
            raise TransientUpstreamError(
                f"Tempo limite de {self.call_timeout}s excedido em {description}"
            ) from exc


__all__ = ["RetryPolicy", "build_wait_strategy", "wait_capped"]
