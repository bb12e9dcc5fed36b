"""Registry for discovering and executing insulin adjustment rules."""
from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Dict, Type

from .adjustment_base import AdjustmentRule
from .models import AdjustmentContext, AdjustmentWindow, PeriodAdjustmentResult


class RuleRegistry:
    """Keeps track of available rules by id."""

    def __init__(self) -> None:
        self._rules: Dict[str, AdjustmentRule] = {}

    def register(self, rule_cls: Type[AdjustmentRule]) -> Type[AdjustmentRule]:
        if rule_cls.id in self._rules:
            raise ValueError(f"Rule '{rule_cls.id}' already registered")
        self._rules[rule_cls.id] = rule_cls()
        return rule_cls

    def clear(self) -> None:
        """Remove all registered rules."""

        self._rules.clear()

    def get(self, rule_id: str) -> AdjustmentRule:
        return self._rules[rule_id]

    def items(self) -> Iterable[tuple[str, AdjustmentRule]]:
        return self._rules.items()

    def values(self) -> Iterable[AdjustmentRule]:
        return self._rules.values()

    def __len__(self) -> int:
        return len(self._rules)

    def evaluate_all(
        self,
        window: AdjustmentWindow,
        context: AdjustmentContext,
        predicate: Callable[[AdjustmentRule], bool] | None = None,
    ) -> list[PeriodAdjustmentResult]:
        """Run every registered rule, optionally filtering."""

        outputs: list[PeriodAdjustmentResult] = []
        for rule in self._rules.values():
            if predicate is not None and not predicate(rule):
                continue
            result = rule.evaluate(window, context)
            if result is not None:
                outputs.append(result)
        return outputs


registry = RuleRegistry()


def register_rule(rule_cls: Type[AdjustmentRule]) -> Type[AdjustmentRule]:
    """Decorator for registering a rule at definition time."""

    return registry.register(rule_cls)
