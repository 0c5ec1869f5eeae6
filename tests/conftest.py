"""
Shared fixtures and builders for the matching core tests.
"""

from datetime import date, datetime, timedelta

import pytest

from thalcare.config import MatchingConfig
from thalcare.models import (
    AvailabilityStatus,
    Doctor,
    Donor,
    DonorTier,
    Priority,
    Request,
    RequestKind,
)
from thalcare.repository import InMemoryCandidateRepository, InMemoryRequestStore, Notifier

TODAY = date(2025, 3, 1)
NOW = datetime(2025, 3, 1, 9, 30)


def make_doctor(doctor_id="DOC-1", region="Karnataka", **overrides) -> Doctor:
    fields = dict(
        doctor_id=doctor_id,
        name=f"Dr. {doctor_id}",
        region=region,
        specialization="General Practice",
        availability=AvailabilityStatus.available,
        current_load=0,
        max_capacity=10,
        is_trainer=False,
        experience_years=5,
        response_rate=90.0,
    )
    fields.update(overrides)
    return Doctor(**fields)


def make_donor(donor_id="DNR-1", region="Karnataka", blood_type="O+", **overrides) -> Donor:
    fields = dict(
        donor_id=donor_id,
        name=f"Donor {donor_id}",
        region=region,
        blood_type=blood_type,
        tier=DonorTier.regular,
        availability=AvailabilityStatus.available,
        last_donation=TODAY - timedelta(days=120),
        total_donations=5,
        response_rate=80.0,
        calls_to_donations_ratio=0.5,
        medical_clearance=True,
        last_active=TODAY - timedelta(days=20),
    )
    fields.update(overrides)
    return Donor(**fields)


def make_request(request_id="REQ-1", region="Karnataka", **overrides) -> Request:
    fields = dict(
        request_id=request_id,
        patient_id="PAT-1",
        region=region,
        kind=RequestKind.consultation,
        priority=Priority.medium,
        description="Routine transfusion review",
        created_at=NOW - timedelta(hours=1),
    )
    fields.update(overrides)
    return Request(**fields)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    def notify(self, candidate_id, request):
        self.sent.append((candidate_id, request.request_id))


@pytest.fixture
def cfg():
    return MatchingConfig()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    return InMemoryRequestStore()


@pytest.fixture
def repo():
    return InMemoryCandidateRepository()
