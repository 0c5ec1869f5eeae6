"""
Boundary collaborators of the matching core: candidate storage, request status
storage and doctor notification.

The in-memory implementations hand out copies so that a matching call works on
a stable snapshot, and serialize every write per candidate record.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from .eligibility import is_eligible
from .errors import StaleCandidateState
from .models import (
    AvailabilityStatus,
    DonationRecord,
    Doctor,
    Donor,
    Request,
    RequestStatus,
)

logger = logging.getLogger(__name__)


class CandidateProvider(ABC):
    """Read access to doctors and donors plus the few atomic writes the core needs."""

    @abstractmethod
    def list_doctors(self, region: Optional[str] = None) -> List[Doctor]:
        pass

    @abstractmethod
    def list_donors(self, region: Optional[str] = None) -> List[Donor]:
        pass

    @abstractmethod
    def get_doctor(self, doctor_id: str) -> Doctor:
        pass

    @abstractmethod
    def get_donor(self, donor_id: str) -> Donor:
        pass

    @abstractmethod
    def reserve_doctor_slot(self, doctor_id: str) -> Doctor:
        """
        Atomically re-check availability and capacity, then take one slot.

        Raises:
            StaleCandidateState: the doctor became unavailable or full.
        """

    @abstractmethod
    def release_doctor_slot(self, doctor_id: str) -> Doctor:
        """Give back a slot taken by reserve_doctor_slot when the assignment could not be stored."""

    @abstractmethod
    def record_donation(
        self, donor_id: str, record: DonationRecord, cooldown_days: int, today: date
    ) -> Donor:
        """
        Atomically re-check eligibility, then append the donation and lock the donor out.

        Raises:
            StaleCandidateState: the donor is unavailable or still cooling down.
        """

    @abstractmethod
    def update_availability(self, candidate_id: str, status: AvailabilityStatus, today: date) -> None:
        pass


class InMemoryCandidateRepository(CandidateProvider):
    def __init__(self, doctors: Iterable[Doctor] = (), donors: Iterable[Donor] = ()):
        self._doctors: Dict[str, Doctor] = {}
        self._donors: Dict[str, Donor] = {}
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._registry_lock = threading.Lock()
        for doc in doctors:
            self.add_doctor(doc)
        for donor in donors:
            self.add_donor(donor)

    def _lock_for(self, candidate_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks[candidate_id]

    def add_doctor(self, doctor: Doctor) -> None:
        with self._registry_lock:
            self._doctors[doctor.doctor_id] = copy.deepcopy(doctor)

    def add_donor(self, donor: Donor) -> None:
        with self._registry_lock:
            self._donors[donor.donor_id] = copy.deepcopy(donor)

    def _snapshot(self, candidate_id: str, record):
        with self._lock_for(candidate_id):
            return copy.deepcopy(record)

    def list_doctors(self, region: Optional[str] = None) -> List[Doctor]:
        with self._registry_lock:
            pool = list(self._doctors.values())
        return [self._snapshot(d.doctor_id, d) for d in pool if region is None or d.region == region]

    def list_donors(self, region: Optional[str] = None) -> List[Donor]:
        with self._registry_lock:
            pool = list(self._donors.values())
        return [self._snapshot(d.donor_id, d) for d in pool if region is None or d.region == region]

    def get_doctor(self, doctor_id: str) -> Doctor:
        try:
            doctor = self._doctors[doctor_id]
        except KeyError:
            raise KeyError(f"Unknown doctor {doctor_id}") from None
        return self._snapshot(doctor_id, doctor)

    def get_donor(self, donor_id: str) -> Donor:
        try:
            donor = self._donors[donor_id]
        except KeyError:
            raise KeyError(f"Unknown donor {donor_id}") from None
        return self._snapshot(donor_id, donor)

    def reserve_doctor_slot(self, doctor_id: str) -> Doctor:
        if doctor_id not in self._doctors:
            raise KeyError(f"Unknown doctor {doctor_id}")
        with self._lock_for(doctor_id):
            doctor = self._doctors[doctor_id]
            if not doctor.is_available:
                raise StaleCandidateState(doctor_id, "not available")
            if not doctor.has_capacity:
                raise StaleCandidateState(doctor_id, "at capacity")
            doctor.current_load += 1
            logger.debug("Doctor %s load now %d/%d", doctor_id, doctor.current_load, doctor.max_capacity)
            return copy.deepcopy(doctor)

    def release_doctor_slot(self, doctor_id: str) -> Doctor:
        if doctor_id not in self._doctors:
            raise KeyError(f"Unknown doctor {doctor_id}")
        with self._lock_for(doctor_id):
            doctor = self._doctors[doctor_id]
            doctor.current_load = max(0, doctor.current_load - 1)
            return copy.deepcopy(doctor)

    def record_donation(
        self, donor_id: str, record: DonationRecord, cooldown_days: int, today: date
    ) -> Donor:
        if donor_id not in self._donors:
            raise KeyError(f"Unknown donor {donor_id}")
        with self._lock_for(donor_id):
            donor = self._donors[donor_id]
            if not donor.is_available:
                raise StaleCandidateState(donor_id, "not available")
            if not is_eligible(donor.last_donation, cooldown_days, today):
                raise StaleCandidateState(donor_id, "donation cooldown has not elapsed")
            donor.donation_history.insert(0, record)
            donor.last_donation = record.donated_on
            donor.total_donations += record.units
            donor.availability = AvailabilityStatus.unavailable
            donor.last_active = today
            return copy.deepcopy(donor)

    def update_availability(self, candidate_id: str, status: AvailabilityStatus, today: date) -> None:
        with self._lock_for(candidate_id):
            if candidate_id in self._donors:
                donor = self._donors[candidate_id]
                donor.availability = status
                donor.last_active = today
            elif candidate_id in self._doctors:
                self._doctors[candidate_id].availability = status
            else:
                raise KeyError(f"Unknown candidate {candidate_id}")


class Notifier(ABC):
    @abstractmethod
    def notify(self, candidate_id: str, request: Request) -> None:
        pass


class LoggingNotifier(Notifier):
    """Writes assignment notices to the log; stands in for email/SMS delivery."""

    def notify(self, candidate_id: str, request: Request) -> None:
        logger.info(
            "New %s request %s (%s priority) for doctor %s",
            request.kind.value,
            request.request_id,
            request.priority.value,
            candidate_id,
        )


class RequestStore(ABC):
    @abstractmethod
    def update_status(self, request_id: str, status: RequestStatus, at: datetime) -> None:
        pass


class InMemoryRequestStore(RequestStore):
    def __init__(self):
        self._requests: Dict[str, Request] = {}
        self._lock = threading.Lock()

    def add(self, request: Request) -> None:
        with self._lock:
            self._requests[request.request_id] = request

    def get(self, request_id: str) -> Request:
        try:
            return self._requests[request_id]
        except KeyError:
            raise KeyError(f"Unknown request {request_id}") from None

    def update_status(self, request_id: str, status: RequestStatus, at: datetime) -> None:
        with self._lock:
            request = self.get(request_id)
            if request.status != status:
                request.advance(status, at)

    def requests_for_doctor(self, doctor_id: str) -> List[Request]:
        return sorted(
            (r for r in self._requests.values() if r.doctor_id == doctor_id),
            key=lambda r: r.created_at,
            reverse=True,
        )

    def requests_for_patient(self, patient_id: str) -> List[Request]:
        return sorted(
            (r for r in self._requests.values() if r.patient_id == patient_id),
            key=lambda r: r.created_at,
            reverse=True,
        )

    def doctor_workload(self, doctor_id: str, today: Optional[date] = None) -> Dict[str, int]:
        today = today or date.today()
        requests = self.requests_for_doctor(doctor_id)
        return {
            "total_requests": len(requests),
            "pending_requests": sum(1 for r in requests if r.status == RequestStatus.pending),
            "completed_today": sum(
                1
                for r in requests
                if r.status == RequestStatus.completed
                and r.completed_at is not None
                and r.completed_at.date() == today
            ),
        }
