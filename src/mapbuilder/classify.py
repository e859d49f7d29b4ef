"""Value-range color classification and legend label assembly."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Sequence

from .models import LegendItem, ValueRange

NumberFormat = Callable[[float, int], str]


def classify(
    value: float | None,
    ranges: Sequence[ValueRange] | None,
    default: str | None = None,
) -> str | None:
    """Return the color of the matching value range, or `default`.

    Ranges are scanned from last to first and the first hit wins, so a range
    appended after a general one overrides it where the two overlap.
    """
    if ranges:
        for value_range in reversed(ranges):
            if value_range.matches(value):
                return value_range.color
    return default


def format_number(
    value: float,
    decimals: int = 2,
    decimal_point: str = ".",
    thousands_sep: str = ",",
) -> str:
    """Format `value` with fixed decimals and grouped thousands, rounding half up."""
    if not math.isfinite(value):
        raise ValueError(f"Cannot format non-finite number {value!r}")
    quantum = Decimal(1).scaleb(-decimals)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)
    text = f"{rounded:,.{decimals}f}"
    return text.replace(",", "\0").replace(".", decimal_point).replace("\0", thousands_sep)


def legend_label(
    value_range: ValueRange,
    decimals: int = 2,
    number_format: NumberFormat = format_number,
) -> str:
    if value_range.name is not None:
        return value_range.name
    from_, to = value_range.from_, value_range.to
    if from_ is None and to is None:
        return ""
    if from_ is None:
        return f"< {number_format(to, decimals)}"
    if to is None:
        return f"> {number_format(from_, decimals)}"
    return f"{number_format(from_, decimals)} - {number_format(to, decimals)}"


def build_legend_items(
    ranges: Sequence[ValueRange],
    decimals: int = 2,
    number_format: NumberFormat = format_number,
) -> tuple[LegendItem, ...]:
    """One static legend entry per range, in declaration order."""
    return tuple(
        LegendItem(
            label=legend_label(value_range, decimals, number_format),
            color=value_range.color,
        )
        for value_range in ranges
    )
