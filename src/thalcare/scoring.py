"""
Bounded additive scoring: each candidate is scored by a list of named factors,
each clamped to its own cap, and the results are summed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Sequence

import numpy as np

from .models import FactorContribution, ScoreResult


@dataclass(frozen=True)
class Factor:
    name: str
    cap: float
    fn: Callable[[Any, Any], float]

    def evaluate(self, candidate: Any, context: Any) -> FactorContribution:
        raw = float(self.fn(candidate, context))
        return FactorContribution(self.name, float(np.clip(raw, 0.0, self.cap)), self.cap)


def max_score(factors: Sequence[Factor]) -> float:
    return float(sum(f.cap for f in factors))


def score(candidate_id: str, candidate: Any, context: Any, factors: Sequence[Factor]) -> ScoreResult:
    contributions = [f.evaluate(candidate, context) for f in factors]
    total = round(sum(c.value for c in contributions), 6)
    return ScoreResult(candidate_id=candidate_id, score=total, factors=contributions)


def rank(results: Iterable[ScoreResult], volume_of: Dict[str, float]) -> List[ScoreResult]:
    """
    Highest score first; ties go to the higher historical volume, then the
    lower candidate id.
    """
    return sorted(
        results,
        key=lambda r: (-r.score, -volume_of.get(r.candidate_id, 0), r.candidate_id),
    )
