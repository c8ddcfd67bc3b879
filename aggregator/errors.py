"""Aggregator error classes.

Every failure carries the values needed to diagnose it as attributes,
so callers never have to re-derive them from the message.
"""

from __future__ import annotations


class AggregatorError(Exception):
    """Base error for aggregator operations."""

    pass


class NoVenuesProvided(AggregatorError):
    """The quote matrix contains no venue rows."""

    def __init__(self) -> None:
        super().__init__("no venues passed in")


class UnresolvableVenue(AggregatorError):
    """A venue with a positive allocation has no pool for its pair and fee."""

    def __init__(self, token_in: str, token_out: str, fee: int) -> None:
        self.token_in = token_in
        self.token_out = token_out
        self.fee = fee
        super().__init__(f"Pool does not exist for tokens {token_in}/{token_out} with fee {fee}")


class EmptyRouteSet(AggregatorError):
    """No route survived filtering of zero allocations."""

    def __init__(self) -> None:
        super().__init__("No valid routes found")


class DeadlinePassed(AggregatorError):
    """Settlement was attempted after its deadline."""

    def __init__(self, deadline: int, now: int) -> None:
        self.deadline = deadline
        self.now = now
        super().__init__(f"Deadline {deadline} passed (now {now})")


class UntrustedCallback(AggregatorError):
    """A swap callback came from an address other than the derived pool."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Callback from {actual}, expected pool {expected}")


class PayerNotBound(AggregatorError):
    """A swap callback arrived with no payer bound to this settlement."""

    def __init__(self) -> None:
        super().__init__("No payer bound for swap callback")


class TransferFailed(AggregatorError):
    """The ledger rejected the payment owed to a pool."""

    def __init__(self, token: str, amount: int, reason: str | None = None) -> None:
        self.token = token
        self.amount = amount
        self.reason = reason
        message = f"Transfer of {amount} {token} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class SlippageViolation(AggregatorError):
    """Realized output fell short of the caller's minimum."""

    def __init__(self, min_amount_out: int, total_amount_out: int) -> None:
        self.min_amount_out = min_amount_out
        self.total_amount_out = total_amount_out
        super().__init__(f"Output {total_amount_out} below minimum {min_amount_out}")


class ReentrantSettlement(AggregatorError):
    """A settlement was started while another is live in the same context."""

    def __init__(self) -> None:
        super().__init__("Settlement already in progress in this context")


class InvalidSwapDeltas(AggregatorError):
    """A pool reported deltas where nothing is owed."""

    def __init__(self, amount0_delta: int, amount1_delta: int) -> None:
        self.amount0_delta = amount0_delta
        self.amount1_delta = amount1_delta
        super().__init__(f"No positive delta in callback ({amount0_delta}, {amount1_delta})")


class LedgerError(AggregatorError):
    """Base error for asset ledger operations."""

    pass


class InsufficientBalance(LedgerError):
    """Sender balance is lower than the transfer amount."""

    pass


class InsufficientAllowance(LedgerError):
    """Spender allowance is lower than the transfer amount."""

    pass


class VenueError(AggregatorError):
    """Base error raised by a venue during a swap."""

    pass


class InsufficientInputAmount(VenueError):
    """The pool was not paid what it asked for in the callback."""

    pass
