"""
Doctor assignment: route a patient request to the best available doctor in its
region, falling back to neighbouring regions when the region has none.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from .config import DoctorWeights, MatchingConfig
from .errors import InvalidRequestData, StaleCandidateState
from .models import Doctor, DoctorAssignment, Priority, Request, RequestKind, RequestStatus, ScoreResult
from .repository import CandidateProvider, LoggingNotifier, Notifier, RequestStore
from .scoring import Factor, rank, score

logger = logging.getLogger(__name__)


def doctor_factors(weights: DoctorWeights) -> List[Factor]:
    def specialization(doc: Doctor, request: Request) -> float:
        keyword, bonus = weights.specialization_bonus.get(request.kind.value, (None, 0.0))
        if keyword and keyword.lower() in doc.specialization.lower():
            return bonus
        return 0.0

    def experience(doc: Doctor, request: Request) -> float:
        return doc.experience_years * weights.points_per_experience_year

    def load_headroom(doc: Doctor, request: Request) -> float:
        return (1 - doc.load_ratio) * weights.load_headroom_cap

    def trainer(doc: Doctor, request: Request) -> float:
        if request.priority == Priority.critical and doc.is_trainer:
            return weights.trainer_critical_bonus
        return 0.0

    return [
        Factor("specialization", weights.specialization_cap, specialization),
        Factor("experience", weights.experience_cap, experience),
        Factor("load_headroom", weights.load_headroom_cap, load_headroom),
        Factor("trainer", weights.trainer_critical_bonus, trainer),
    ]


def validate_request(request: Request) -> None:
    if not isinstance(request.region, str) or not request.region.strip():
        raise InvalidRequestData(f"Request {request.request_id} has no region")
    if not isinstance(request.kind, RequestKind):
        raise InvalidRequestData(f"Request {request.request_id} has an unknown kind: {request.kind!r}")
    if not isinstance(request.priority, Priority):
        raise InvalidRequestData(f"Request {request.request_id} has an unknown priority: {request.priority!r}")
    if request.status != RequestStatus.pending:
        raise InvalidRequestData(
            f"Request {request.request_id} is {request.status.value}; only pending requests can be assigned"
        )


@dataclass
class DoctorAssignmentEngine:
    repository: CandidateProvider
    request_store: RequestStore
    notifier: Notifier = field(default_factory=LoggingNotifier)
    cfg: MatchingConfig = field(default_factory=MatchingConfig)
    clock: Callable[[], datetime] = datetime.now

    def __post_init__(self):
        self.factors = doctor_factors(self.cfg.doctor_weights)

    def candidate_pool(self, region: str) -> List[Doctor]:
        return [d for d in self.repository.list_doctors(region) if d.is_selectable]

    def _locate_pool(self, region: str) -> Tuple[Optional[str], List[Doctor]]:
        pool = self.candidate_pool(region)
        if pool:
            return region, pool
        for neighbor in self.cfg.neighbors_of(region):
            pool = self.candidate_pool(neighbor)
            if pool:
                logger.info("No doctors available in %s, falling back to %s", region, neighbor)
                return neighbor, pool
        return None, []

    def rank_doctors(self, request: Request, region: Optional[str] = None) -> List[Tuple[Doctor, ScoreResult]]:
        pool = self.candidate_pool(region or request.region)
        return self._rank(request, pool)

    def _rank(self, request: Request, pool: List[Doctor]) -> List[Tuple[Doctor, ScoreResult]]:
        by_id = {d.doctor_id: d for d in pool}
        results = [score(d.doctor_id, d, request, self.factors) for d in pool]
        volume = {d.doctor_id: d.experience_years for d in pool}
        return [(by_id[r.candidate_id], r) for r in rank(results, volume)]

    def _select(self, request: Request) -> Optional[Tuple[Doctor, ScoreResult, bool]]:
        region, pool = self._locate_pool(request.region)
        if region is None:
            return None
        best, result = self._rank(request, pool)[0]
        return best, result, region != request.region

    def assign(self, request: Request) -> Optional[DoctorAssignment]:
        """
        Pick, commit and announce a doctor for a pending request.

        Returns ``None`` when neither the region nor its neighbours have a
        selectable doctor; the request then stays pending for manual triage.

        Raises:
            InvalidRequestData: the request cannot be routed.
            StaleCandidateState: the chosen doctor filled up twice in a row.

        If the request store rejects the status change, the doctor slot is
        released, the request is put back to pending and the error propagates.
        """
        validate_request(request)

        for attempt in range(2):
            selection = self._select(request)
            if selection is None:
                logger.warning("No doctor available for request %s in %s or its neighbours",
                               request.request_id, request.region)
                return None
            doctor, result, via_neighbor = selection
            try:
                self.repository.reserve_doctor_slot(doctor.doctor_id)
                break
            except StaleCandidateState:
                if attempt == 1:
                    raise
                logger.info("Doctor %s changed before commit, re-running selection", doctor.doctor_id)

        assigned_at = self.clock()
        request.doctor_id = doctor.doctor_id
        request.advance(RequestStatus.assigned, assigned_at)
        try:
            self.request_store.update_status(request.request_id, RequestStatus.assigned, assigned_at)
        except Exception:
            logger.error("Could not store assignment of request %s; releasing doctor %s",
                         request.request_id, doctor.doctor_id)
            self.repository.release_doctor_slot(doctor.doctor_id)
            request.doctor_id = None
            request.assigned_at = None
            request.status = RequestStatus.pending
            raise
        self._notify(doctor.doctor_id, request)

        logger.info("Request %s assigned to doctor %s (score %.1f)",
                    request.request_id, doctor.doctor_id, result.score)
        return DoctorAssignment(
            request_id=request.request_id,
            doctor_id=doctor.doctor_id,
            doctor_name=doctor.name,
            specialization=doctor.specialization,
            region=doctor.region,
            assigned_at=assigned_at,
            score=result,
            via_neighbor=via_neighbor,
        )

    def _notify(self, doctor_id: str, request: Request) -> None:
        try:
            self.notifier.notify(doctor_id, request)
        except Exception:
            logger.exception("Failed to notify doctor %s about request %s", doctor_id, request.request_id)
