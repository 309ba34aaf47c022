"""
Module: invoicing_engines.percent
Responsibility:
    Interpret heterogeneous percentage encodings (fractions, whole-number
    percents, "25%" strings, "$1,250.00"-style decorated strings) as a
    canonical fraction, and re-normalize weighted split maps to sum to one.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``normalize_percent`` never raises; anything it cannot read as a
      finite, positive number is 0.
    - Values above the scale threshold (default 1.5) are whole-number
      percents and are divided by 100; values in (0, threshold] are already
      fractions.
    - ``normalize_split`` output sums to exactly 1 (up to Decimal precision)
      or is empty.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

from invoicing_engines.types import ZERO

DEFAULT_SCALE_THRESHOLD = Decimal("1.5")

_HUNDRED = Decimal("100")
_NUMBER = re.compile(r"-?(?:\d+(?:\.\d+)?|\.\d+)(?:[eE][-+]?\d+)?")


def parse_number(raw: Any) -> Decimal | None:
    """Read a number out of ``raw``; ``None`` when nothing numeric is there.

    Strings may carry ``%``, ``$``, thousands separators and surrounding
    text; the first numeric token wins, exponent included (``"5E-01"``).
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, Decimal):
        return raw if raw.is_finite() else None
    if isinstance(raw, (int, float)):
        text = str(raw)
    elif isinstance(raw, str):
        match = _NUMBER.search(raw.replace(",", ""))
        if match is None:
            return None
        text = match.group(0)
    else:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def normalize_percent(
    raw: Any,
    scale_threshold: Decimal = DEFAULT_SCALE_THRESHOLD,
) -> Decimal:
    """Canonical fraction for a raw percent value.

    >>> normalize_percent("25%")
    Decimal('0.25')
    >>> normalize_percent(0.25)
    Decimal('0.25')
    >>> normalize_percent("n/a")
    Decimal('0')
    """
    value = parse_number(raw)
    if value is None or value <= ZERO:
        return ZERO
    if value > scale_threshold:
        return value / _HUNDRED
    return value


def normalize_split(split: Mapping[str, Any]) -> dict[str, Decimal]:
    """Re-weight a split map so its values sum to 1.

    Entries are raw weights on any common scale (percents, fractions, head
    counts); unreadable and non-positive entries are dropped.  A map whose
    weights sum to zero yields ``{}``: nothing is distributed.

    >>> normalize_split({"A": 10, "B": 30})
    {'A': Decimal('0.25'), 'B': Decimal('0.75')}
    """
    weights = {
        key: w
        for key, w in ((k, parse_number(v)) for k, v in split.items())
        if w is not None and w > ZERO
    }
    total = sum(weights.values(), ZERO)
    if total <= ZERO:
        return {}
    return {key: w / total for key, w in weights.items()}
