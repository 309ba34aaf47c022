"""
Invoicing settings schema.

Tunable constants of the allocation engine.  Defaults reproduce the
behavior of the allocation workbook the engine was built for; override them
per deployment from the ``settings:`` block of an allocation-table YAML file
or at instantiation:

    settings = InvoicingSettings(marketing_target="Mktg")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from invoicing_kernel.exceptions import InvalidSettingsError
from invoicing_kernel.logging_config import get_logger

logger = get_logger("config.schema")


def _as_decimal(setting: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise InvalidSettingsError(setting, value, "must be a number")
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidSettingsError(setting, value, "must be a number") from exc


@dataclass(frozen=True)
class InvoicingSettings:
    """
    Engine settings.

    percent_scale_threshold:
        Raw percents above this are read as 0-100 values.
    contribution_threshold:
        Allocated amounts smaller than this (absolute) are dropped as dust.
    marketing_target:
        Allocation-sheet key of the marketing column (case-insensitive).
    currency_places:
        Decimal places invoice lines are rounded to.
    """

    percent_scale_threshold: Decimal = Decimal("1.5")
    contribution_threshold: Decimal = Decimal("0.005")
    marketing_target: str = "marketing"
    currency_places: int = 2

    def __post_init__(self) -> None:
        threshold = _as_decimal("percent_scale_threshold", self.percent_scale_threshold)
        if not threshold.is_finite() or threshold < Decimal("1"):
            raise InvalidSettingsError(
                "percent_scale_threshold", threshold, "must be at least 1"
            )
        object.__setattr__(self, "percent_scale_threshold", threshold)

        dust = _as_decimal("contribution_threshold", self.contribution_threshold)
        if not dust.is_finite() or dust < Decimal("0"):
            raise InvalidSettingsError(
                "contribution_threshold", dust, "must be non-negative"
            )
        object.__setattr__(self, "contribution_threshold", dust)

        if not isinstance(self.marketing_target, str) or not self.marketing_target.strip():
            raise InvalidSettingsError(
                "marketing_target", self.marketing_target, "must be a non-empty string"
            )
        if (
            isinstance(self.currency_places, bool)
            or not isinstance(self.currency_places, int)
            or not 0 <= self.currency_places <= 6
        ):
            raise InvalidSettingsError(
                "currency_places", self.currency_places, "must be an integer 0..6"
            )

        logger.debug("invoicing_settings_initialized", extra={
            "percent_scale_threshold": str(threshold),
            "contribution_threshold": str(dust),
            "marketing_target": self.marketing_target,
            "currency_places": self.currency_places,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> InvoicingSettings:
        """Settings from a plain mapping; unknown keys are rejected."""
        data = dict(data or {})
        known = {"percent_scale_threshold", "contribution_threshold",
                 "marketing_target", "currency_places"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidSettingsError(unknown[0], data[unknown[0]], "unknown setting")
        return cls(**data)
