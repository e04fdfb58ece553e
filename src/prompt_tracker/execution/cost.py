"""USD cost of a generation from its token usage.

Prices are USD per million tokens, as (input, output) pairs keyed by
model name. A dated or provider-prefixed name (gpt-4o-2024-08-06,
models/gemini-2.5-pro) resolves to the longest table key it extends.
"""

from __future__ import annotations

from collections.abc import Mapping

from prompt_tracker.models.response import TokenUsage

PRICES_PER_MILLION: dict[str, tuple[float, float]] = {
    "gpt-4o": (2.50, 10.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4.1": (2.00, 8.00),
    "gpt-4.1-mini": (0.40, 1.60),
    "claude-sonnet-4-5": (3.00, 15.00),
    "claude-haiku-4-5": (1.00, 5.00),
    "gemini-2.5-flash": (0.30, 2.50),
    "gemini-2.5-pro": (1.25, 10.00),
}


def resolve_priced_model(
    model: str, prices: Mapping[str, tuple[float, float]] = PRICES_PER_MILLION
) -> str | None:
    """Return the table key that prices model, or None."""
    name = model.rsplit("/", 1)[-1]
    if name in prices:
        return name
    extended = [key for key in prices if name.startswith(f"{key}-")]
    return max(extended, key=len) if extended else None


def estimate_cost(
    model: str,
    usage: TokenUsage,
    prices: Mapping[str, tuple[float, float]] | None = None,
) -> float | None:
    """Estimate the USD cost of one generation.

    Only prompt and completion tokens are priced; total_tokens is ignored.

    Returns:
        Cost rounded to 6 decimal places, or None for an unpriced model.
    """
    table = PRICES_PER_MILLION if prices is None else prices
    resolved = resolve_priced_model(model, table)
    if resolved is None:
        return None
    input_price, output_price = table[resolved]
    cost = usage.prompt_tokens * input_price + usage.completion_tokens * output_price
    return round(cost / 1_000_000, 6)
