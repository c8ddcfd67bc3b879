"""Settlement-scoped payer binding.

During one settlement the engine must know who pays for each leg when a
pool calls back, but the callback's parameters come from the pool and
cannot carry that. The binding lives in a ``ContextVar``: visible to
every callback made synchronously within the settlement, isolated
between threads and asyncio tasks, and reset on every exit path.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from aggregator.errors import ReentrantSettlement

if TYPE_CHECKING:
    from aggregator.settlement.engine import SwapOutcome


@dataclass(frozen=True)
class PayerBinding:
    """The payer of the settlement currently run by ``engine``.

    ``outcomes`` collects the output of each paid leg of that settlement.
    """

    engine: str
    payer: str
    outcomes: list[SwapOutcome] = field(default_factory=list)


_current_payer: ContextVar[PayerBinding | None] = ContextVar("current_payer", default=None)


def current_binding(engine: str) -> PayerBinding | None:
    """Binding made by ``engine`` in this context, if any."""
    binding = _current_payer.get()
    if binding is None or binding.engine != engine:
        return None
    return binding


def payer_is_bound() -> bool:
    return _current_payer.get() is not None


@contextmanager
def bind_payer(engine: str, payer: str) -> Iterator[PayerBinding]:
    """Bind the payer for the duration of the block.

    Raises:
        ReentrantSettlement: If a binding is already live in this context
    """
    if _current_payer.get() is not None:
        raise ReentrantSettlement()
    binding = PayerBinding(engine=engine, payer=payer)
    token = _current_payer.set(binding)
    try:
        yield binding
    finally:
        _current_payer.reset(token)


__all__ = ["PayerBinding", "bind_payer", "current_binding", "payer_is_bound"]
