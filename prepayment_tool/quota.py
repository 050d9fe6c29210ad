"""
Remaining assignment counts per Case and per Scenario for one run.
"""
from typing import Dict, List, Mapping

from .errors import ConfigError, QuotaExhaustedError
from .models import Case, Label, Scenario


class QuotaTracker:
    """Holds the mutable Case and Scenario counters of a single run.

    Counters are seeded once and only ever decremented. The tracker is owned
    by the record processor and is never shared between runs.
    """

    def __init__(self, case_quotas: Mapping[Case, int], scenario_quotas: Mapping[Scenario, int]):
        self._counts: Dict[Label, int] = {}
        for case in Case:
            self._counts[case] = self._validated(case, case_quotas.get(case, 0))
        for scenario in Scenario:
            self._counts[scenario] = self._validated(scenario, scenario_quotas.get(scenario, 0))

    @staticmethod
    def _validated(label: Label, value) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"Quota for {label.value} must be an integer, got {value!r}")
        if value < 0:
            raise ConfigError(f"Quota for {label.value} must not be negative, got {value}")
        return value

    @classmethod
    def from_config(cls, config) -> "QuotaTracker":
        return cls(config.case_quotas, config.scenario_quotas)

    def available_cases(self) -> List[Case]:
        return [case for case in Case if self._counts[case] > 0]

    def available_scenarios(self) -> List[Scenario]:
        return [scenario for scenario in Scenario if self._counts[scenario] > 0]

    def remaining(self, label: Label) -> int:
        return self._counts[label]

    def consume(self, label: Label) -> None:
        """Decrements the counter of a Case or Scenario by one.

        Raises:
            QuotaExhaustedError: If the counter is already zero.
        """
        if self._counts[label] <= 0:
            raise QuotaExhaustedError(f"No remaining quota for {label.value}")
        self._counts[label] -= 1

    def snapshot(self) -> Dict[str, int]:
        """Returns the current counters keyed by label text."""
        return {label.value: count for label, count in self._counts.items()}

    def total_cases(self) -> int:
        return sum(self._counts[case] for case in Case)

    def total_scenarios(self) -> int:
        return sum(self._counts[scenario] for scenario in Scenario)
