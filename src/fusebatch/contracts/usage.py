# src/fusebatch/contracts/usage.py
"""Model usage and cost records attached to generation events.

These are immutable values. The convenience constructors replace a mutable
builder: each returns a fresh Usage rather than modifying one in place.
"""

from dataclasses import dataclass, fields, replace

from fusebatch.contracts.enums import UsageUnit
from fusebatch.contracts.errors import validation_error

MAX_USAGE_QUANTITY = 9_999_999
MAX_USAGE_COST = 999_999.0


def _check_range(owner: str, name: str, value: float | None, upper: float) -> None:
    if value is None:
        return
    if value < 0 or value > upper:
        raise validation_error(f"{owner}.{name}", value, f"must be within 0..{upper:g}")


@dataclass(frozen=True, slots=True)
class Usage:
    """Aggregate usage of a model call.

    Quantities are measured in ``unit``; costs are in the project currency.
    Prompt/completion/total token counts mirror input/output/total for
    token-based providers.
    """

    input: int | None = None
    output: int | None = None
    total: int | None = None
    unit: UsageUnit | None = None
    input_cost: float | None = None
    output_cost: float | None = None
    total_cost: float | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    @classmethod
    def from_tokens(cls, input: int, output: int) -> "Usage":
        """Usage measured in tokens."""
        return cls(
            input=input,
            output=output,
            total=input + output,
            unit=UsageUnit.TOKENS,
            prompt_tokens=input,
            completion_tokens=output,
            total_tokens=input + output,
        )

    @classmethod
    def from_characters(cls, input: int, output: int) -> "Usage":
        """Usage measured in characters."""
        return cls(input=input, output=output, total=input + output, unit=UsageUnit.CHARACTERS)

    def with_costs(self, input_cost: float, output_cost: float) -> "Usage":
        """Return a copy with input/output costs and their total."""
        return replace(self, input_cost=input_cost, output_cost=output_cost, total_cost=input_cost + output_cost)

    def validate(self) -> None:
        for name in ("input", "output", "total", "prompt_tokens", "completion_tokens", "total_tokens"):
            _check_range("usage", name, getattr(self, name), MAX_USAGE_QUANTITY)
        for name in ("input_cost", "output_cost", "total_cost"):
            _check_range("usage", name, getattr(self, name), MAX_USAGE_COST)


@dataclass(frozen=True, slots=True)
class UsageDetail:
    """Fine-grained usage breakdown. Serialized with snake_case keys."""

    input: int | None = None
    output: int | None = None
    image: int | None = None
    output_reasoning: int | None = None
    total: int | None = None
    input_cache_read: int | None = None
    input_cached_tokens: int | None = None
    cache_read_input_tokens: int | None = None
    cache_creation_input_tokens: int | None = None

    def validate(self) -> None:
        for f in fields(self):
            # output_reasoning is provider-defined and left unchecked
            if f.name != "output_reasoning":
                _check_range("usage_details", f.name, getattr(self, f.name), MAX_USAGE_QUANTITY)


@dataclass(frozen=True, slots=True)
class CostDetail:
    """Fine-grained cost breakdown. Serialized with snake_case keys."""

    input: float | None = None
    output: float | None = None
    total: float | None = None
    image: float | None = None
    input_cached_tokens: float | None = None
    cache_creation_input_tokens: float | None = None
    output_reasoning: float | None = None

