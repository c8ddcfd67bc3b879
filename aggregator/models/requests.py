"""Pydantic models for aggregator requests and responses."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from aggregator.models.types import Address, Uint256, normalize_address


class SwapRequest(BaseModel):
    """A request to swap an exact input amount of one token for another."""

    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    amount_in: Uint256 = Field(alias="amountIn", description="Raw input amount.")
    min_amount_out: Uint256 = Field(
        default=0,
        alias="minAmountOut",
        description="Minimum total raw output across all legs.",
    )
    deadline: int = Field(ge=0, description="Unix timestamp after which settlement is refused.")

    model_config = {"populate_by_name": True}

    @field_validator("token_in", "token_out")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return normalize_address(value)

    @model_validator(mode="after")
    def _distinct_tokens(self) -> SwapRequest:
        if self.token_in == self.token_out:
            raise ValueError("tokenIn and tokenOut must differ")
        if self.amount_in == 0:
            raise ValueError("amountIn must be positive")
        return self


class OptimizeRequest(BaseModel):
    """A quote matrix: one row per venue, row[k] the output for k parts."""

    amounts: list[list[int]] = Field(description="Rows of equal length parts + 1.")

    @field_validator("amounts")
    @classmethod
    def _rectangular(cls, rows: list[list[int]]) -> list[list[int]]:
        if rows:
            width = len(rows[0])
            if width == 0:
                raise ValueError("rows must include the zero-parts entry")
            if any(len(row) != width for row in rows):
                raise ValueError("all rows must have the same length")
        return rows


class OptimizeResponse(BaseModel):
    """Optimal split of parts across venues."""

    total_amount_out: int = Field(alias="totalAmountOut")
    distribution: list[int]

    model_config = {"populate_by_name": True}


class RouteModel(BaseModel):
    """One settlement leg."""

    pair: Address
    fee: int
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    amount_in: Uint256 = Field(alias="amountIn")

    model_config = {"populate_by_name": True}


class PlanResponse(BaseModel):
    """Quoted plan for a swap request."""

    total_amount_out: Uint256 = Field(alias="totalAmountOut")
    distribution: list[int]
    fee_tiers: list[int] = Field(alias="feeTiers")
    routes: list[RouteModel]
    calldata: str | None = Field(
        default=None, description="Encoded aggregateSwap call for the routes."
    )

    model_config = {"populate_by_name": True}


__all__ = [
    "OptimizeRequest",
    "OptimizeResponse",
    "PlanResponse",
    "RouteModel",
    "SwapRequest",
]
