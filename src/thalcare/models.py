"""
Typed containers used throughout the matching core.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, FrozenSet, List, Optional

from .errors import InvalidStatusTransition


class RequestKind(str, enum.Enum):
    consultation = "consultation"
    blood_request = "blood_request"
    health_analysis = "health_analysis"
    emergency = "emergency"


class Priority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

    @property
    def is_urgent(self) -> bool:
        return self in (Priority.high, Priority.critical)


class RequestStatus(str, enum.Enum):
    pending = "pending"
    assigned = "assigned"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class AvailabilityStatus(str, enum.Enum):
    available = "available"
    unavailable = "unavailable"
    pending = "pending"  # awaiting re-confirmation


class DonorTier(str, enum.Enum):
    emergency = "emergency"
    bridge = "bridge"
    regular = "regular"


class VerificationStatus(str, enum.Enum):
    verified = "verified"
    pending = "pending"
    rejected = "rejected"


ALLOWED_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.pending: frozenset({RequestStatus.assigned, RequestStatus.cancelled}),
    RequestStatus.assigned: frozenset({RequestStatus.in_progress, RequestStatus.cancelled}),
    RequestStatus.in_progress: frozenset({RequestStatus.completed, RequestStatus.cancelled}),
    RequestStatus.completed: frozenset(),
    RequestStatus.cancelled: frozenset(),
}


def check_transition(current: RequestStatus, target: RequestStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(current, target)


@dataclass
class HealthSnapshot:
    hemoglobin: Optional[float] = None
    iron: Optional[float] = None
    weight: Optional[float] = None
    blood_type: Optional[str] = None
    symptoms: List[str] = field(default_factory=list)


@dataclass
class Request:
    request_id: str
    patient_id: str
    region: str
    kind: RequestKind
    priority: Priority
    description: str = ""
    health: Optional[HealthSnapshot] = None
    created_at: datetime = field(default_factory=datetime.now)
    status: RequestStatus = RequestStatus.pending
    doctor_id: Optional[str] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None

    _IMMUTABLE = frozenset({"request_id", "patient_id", "region", "kind", "priority", "created_at"})

    def __setattr__(self, name, value):
        if name in self._IMMUTABLE and name in self.__dict__:
            raise AttributeError(f"Request.{name} cannot change after creation")
        super().__setattr__(name, value)

    def advance(self, target: RequestStatus, at: Optional[datetime] = None) -> None:
        check_transition(self.status, target)
        at = at or datetime.now()
        if target == RequestStatus.assigned:
            self.assigned_at = at
        elif target == RequestStatus.completed:
            self.completed_at = at
        self.status = target


@dataclass
class Doctor:
    doctor_id: str
    name: str
    region: str
    specialization: str
    availability: AvailabilityStatus = AvailabilityStatus.available
    current_load: int = 0
    max_capacity: int = 50
    is_trainer: bool = False
    experience_years: int = 0
    response_rate: float = 0.0

    @property
    def is_available(self) -> bool:
        return self.availability == AvailabilityStatus.available

    @property
    def has_capacity(self) -> bool:
        return self.current_load < self.max_capacity

    @property
    def is_selectable(self) -> bool:
        return self.is_available and self.has_capacity

    @property
    def load_ratio(self) -> float:
        if self.max_capacity <= 0:
            return 1.0
        return self.current_load / self.max_capacity


@dataclass
class DonationRecord:
    donation_id: str
    donated_on: date
    location: str
    units: int = 1
    recipient_type: str = "patient"  # patient / blood_bank
    recipient_id: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class Donor:
    donor_id: str
    name: str
    region: str
    blood_type: str
    tier: DonorTier = DonorTier.regular
    availability: AvailabilityStatus = AvailabilityStatus.available
    last_donation: Optional[date] = None
    total_donations: int = 0
    response_rate: float = 0.0
    calls_to_donations_ratio: float = 0.0
    medical_clearance: bool = True
    verification_status: VerificationStatus = VerificationStatus.verified
    last_active: Optional[date] = None
    city: str = ""
    phone: str = ""
    email: str = ""
    donation_history: List[DonationRecord] = field(default_factory=list)

    @property
    def is_available(self) -> bool:
        return self.availability == AvailabilityStatus.available

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.verified


@dataclass(frozen=True)
class FactorContribution:
    name: str
    value: float
    cap: float


@dataclass(frozen=True)
class ScoreResult:
    candidate_id: str
    score: float
    factors: List[FactorContribution]

    def factor(self, name: str) -> float:
        for contribution in self.factors:
            if contribution.name == name:
                return contribution.value
        raise KeyError(name)


@dataclass
class DoctorAssignment:
    request_id: str
    doctor_id: str
    doctor_name: str
    specialization: str
    region: str
    assigned_at: datetime
    score: ScoreResult
    via_neighbor: bool = False
