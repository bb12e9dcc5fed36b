"""Base class and utilities for insulin adjustment rules."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Sequence

from .models import (
    AdjustmentContext,
    AdjustmentDirection,
    AdjustmentWindow,
    InsulinComponent,
    InsulinRegimen,
    Period,
    PeriodAdjustmentResult,
    as_number,
)


def current_component_dose(
    regimens: Sequence[InsulinRegimen],
    component: InsulinComponent,
) -> Optional[float]:
    """Return the patient's current dose for a component, if one is prescribed."""

    matching = [regimen for regimen in regimens if regimen.insulin_type.kind is component.kind]
    for slot in component.slots:
        dose = sum(regimen.dose_at(slot) for regimen in matching)
        if dose > 0:
            return dose
    return None


class AdjustmentRule(ABC):
    """Evaluates one measurement period and attributes it to an insulin dose."""

    id: str = ""
    description: str = ""
    version: str = "1.0.0"
    period: Period
    insulin: InsulinComponent

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if not cls.id:
            raise ValueError(f"Rule {cls.__name__} must define a non-empty id")

    @abstractmethod
    def evaluate(
        self,
        window: AdjustmentWindow,
        context: AdjustmentContext,
    ) -> PeriodAdjustmentResult | None:
        """Return a result for the period, or ``None`` when it has no readings."""

    def resolved_threshold(self, context: AdjustmentContext, key: str, default: Any) -> Any:
        """Helper to fetch rule-specific threshold overrides."""

        return context.rule_threshold(self.id, key, default)

    def result(
        self,
        context: AdjustmentContext,
        direction: AdjustmentDirection,
        justification: str,
        *,
        days_with_problem: int,
        days_analyzed: int,
        observed: Iterable[float] = (),
        insulin: InsulinComponent | None = None,
        reference_value: float | None = None,
        hyperglycemia_overridden: bool = False,
    ) -> PeriodAdjustmentResult:
        component = insulin or self.insulin
        return PeriodAdjustmentResult(
            period=self.period,
            insulin=component,
            direction=direction,
            justification=justification,
            days_with_problem=days_with_problem,
            days_analyzed=days_analyzed,
            observed_values=tuple(as_number(value) for value in observed),
            reference_value=None if reference_value is None else round(float(reference_value), 1),
            current_dose=current_component_dose(context.insulin_regimens, component),
            hyperglycemia_overridden=hyperglycemia_overridden,
            rule_id=self.id,
        )

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"<{self.__class__.__name__} id={self.id!r} version={self.version!r}>"
