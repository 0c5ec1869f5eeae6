"""
Donor matching, donation recording and pool insights.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from thalcare.donors import DonorMatcher, donor_profile_score, donor_statistics, predict_availability
from thalcare.errors import InvalidRequestData, StaleCandidateState
from thalcare.models import AvailabilityStatus, DonationRecord, DonorTier, Priority, VerificationStatus
from thalcare.repository import InMemoryCandidateRepository

from conftest import TODAY, make_donor


def _matcher(donors, cfg):
    repo = InMemoryCandidateRepository(donors=donors)
    return DonorMatcher(repo, cfg, clock=lambda: TODAY), repo


def test_direct_match_in_karnataka(cfg):
    donor = make_donor("DNR-KA-001", region="Karnataka", blood_type="O+", response_rate=90, total_donations=15)
    matcher, _ = _matcher([donor], cfg)

    matches = matcher.find_matches("O+", "Karnataka", "high")

    assert [d.donor_id for d in matches] == ["DNR-KA-001"]


def test_recent_donor_is_locked_out(cfg):
    star = make_donor(
        "DNR-STAR",
        tier=DonorTier.emergency,
        response_rate=100,
        total_donations=30,
        last_donation=TODAY - timedelta(days=10),
    )
    other = make_donor("DNR-OTHER", response_rate=60, total_donations=2)
    matcher, _ = _matcher([star, other], cfg)

    assert [d.donor_id for d in matcher.find_matches("O+", "Karnataka", Priority.critical)] == ["DNR-OTHER"]


def test_filters_incompatible_other_region_unavailable_and_uncleared(cfg):
    donors = [
        make_donor("DNR-OK", blood_type="O-"),
        make_donor("DNR-AB", blood_type="AB+"),
        make_donor("DNR-FAR", region="Maharashtra", blood_type="O-"),
        make_donor("DNR-OFF", availability=AvailabilityStatus.unavailable),
        make_donor("DNR-WAIT", availability=AvailabilityStatus.pending),
        make_donor("DNR-MED", medical_clearance=False),
    ]
    matcher, _ = _matcher(donors, cfg)
    assert [d.donor_id for d in matcher.find_matches("O+", "Karnataka", "medium")] == ["DNR-OK"]


def test_ab_positive_patient_receives_from_every_type(cfg):
    donors = [make_donor(f"DNR-{bt}", blood_type=bt) for bt in ("O-", "A+", "B-", "AB+")]
    matcher, _ = _matcher(donors, cfg)
    assert len(matcher.find_matches("AB+", "Karnataka", "low", units_required=2)) == 4


def test_emergency_tier_outranks_when_urgent(cfg):
    emergency = make_donor(
        "DNR-EM", tier=DonorTier.emergency, response_rate=60, total_donations=5, calls_to_donations_ratio=0
    )
    regular = make_donor("DNR-REG", response_rate=100, total_donations=20, calls_to_donations_ratio=0)
    matcher, _ = _matcher([emergency, regular], cfg)

    assert matcher.find_matches("O+", "Karnataka", "high")[0].donor_id == "DNR-EM"
    assert matcher.find_matches("O+", "Karnataka", "critical")[0].donor_id == "DNR-EM"
    assert matcher.find_matches("O+", "Karnataka", "low")[0].donor_id == "DNR-REG"


@pytest.mark.parametrize("urgency", ["high", "critical"])
def test_weak_emergency_donor_beats_strongest_regular_and_bridge_when_urgent(cfg, urgency):
    emergency = make_donor(
        "DNR-EM",
        tier=DonorTier.emergency,
        response_rate=40,
        total_donations=0,
        calls_to_donations_ratio=0,
        last_active=TODAY - timedelta(days=90),
    )
    strongest = dict(response_rate=100, total_donations=40, calls_to_donations_ratio=1.0, last_active=TODAY)
    regular = make_donor("DNR-REG", **strongest)
    bridge = make_donor("DNR-BRG", tier=DonorTier.bridge, **strongest)
    matcher, _ = _matcher([regular, bridge, emergency], cfg)

    assert [d.donor_id for d in matcher.find_matches("O+", "Karnataka", urgency)] == [
        "DNR-EM",
        "DNR-BRG",
        "DNR-REG",
    ]


def test_recently_active_bonus(cfg):
    fresh = make_donor("DNR-B", last_active=TODAY - timedelta(days=3))
    stale = make_donor("DNR-A", last_active=TODAY - timedelta(days=7))
    matcher, _ = _matcher([fresh, stale], cfg)

    ranked = matcher.score_matches("O+", "Karnataka", "medium")

    assert [d.donor_id for d, _ in ranked] == ["DNR-B", "DNR-A"]
    assert ranked[0][1].factor("recency") == 10
    assert ranked[1][1].factor("recency") == 0


def test_ties_prefer_more_donations_then_id(cfg):
    donors = [
        make_donor("DNR-C", total_donations=25, response_rate=80),
        make_donor("DNR-B", total_donations=20, response_rate=80),
        make_donor("DNR-A", total_donations=20, response_rate=80),
    ]
    matcher, _ = _matcher(donors, cfg)
    ranked = matcher.score_matches("O+", "Karnataka", "medium", units_required=1)
    assert ranked[0][1].score == ranked[1][1].score == ranked[2][1].score
    assert [d.donor_id for d, _ in ranked] == ["DNR-C", "DNR-A", "DNR-B"]


@pytest.mark.parametrize("units, expected", [(1, 3), (2, 6), (3, 9), (4, 10), (50, 10)])
def test_result_length_cap(cfg, units, expected):
    donors = [make_donor(f"DNR-{i:02d}") for i in range(12)]
    matcher, _ = _matcher(donors, cfg)
    assert len(matcher.find_matches("O+", "Karnataka", "medium", units_required=units)) == expected


def test_matching_does_not_mutate_pool(cfg):
    matcher, repo = _matcher([make_donor("DNR-1")], cfg)
    before = repo.get_donor("DNR-1")
    matcher.find_matches("O+", "Karnataka", "high")
    matcher.find_matches("O+", "Karnataka", "high")
    assert repo.get_donor("DNR-1") == before


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(blood_type_needed="C+", region="Karnataka", urgency="high"),
        dict(blood_type_needed="O+", region="", urgency="high"),
        dict(blood_type_needed="O+", region="Karnataka", urgency="urgent"),
        dict(blood_type_needed="O+", region="Karnataka", urgency="high", units_required=0),
    ],
)
def test_invalid_requirements_fail_fast(cfg, kwargs):
    matcher, _ = _matcher([make_donor()], cfg)
    with pytest.raises(InvalidRequestData):
        matcher.find_matches(**kwargs)


def test_record_donation_locks_donor_out(cfg):
    matcher, repo = _matcher([make_donor("DNR-1", total_donations=4)], cfg)

    donor = matcher.record_donation("DNR-1", location="KIMS Hubli", units=1, recipient_id="PAT-9")

    assert donor.total_donations == 5
    assert donor.last_donation == TODAY
    assert donor.last_active == TODAY
    assert donor.availability == AvailabilityStatus.unavailable
    assert donor.donation_history[0].location == "KIMS Hubli"
    assert donor.donation_history[0].recipient_id == "PAT-9"
    assert matcher.next_eligible(donor) == TODAY + timedelta(days=56)
    assert matcher.find_matches("O+", "Karnataka", "high") == []

    # re-confirming availability is not enough while the cooldown runs
    matcher.update_availability("DNR-1", AvailabilityStatus.available)
    assert matcher.find_matches("O+", "Karnataka", "high") == []
    with pytest.raises(StaleCandidateState):
        matcher.record_donation("DNR-1", location="KIMS Hubli")


def test_record_donation_rejects_unavailable_and_unknown(cfg):
    matcher, _ = _matcher([make_donor("DNR-1", availability=AvailabilityStatus.pending)], cfg)
    with pytest.raises(StaleCandidateState):
        matcher.record_donation("DNR-1", location="Apollo")
    with pytest.raises(KeyError):
        matcher.record_donation("DNR-404", location="Apollo")
    with pytest.raises(InvalidRequestData):
        matcher.record_donation("DNR-1", location="Apollo", units=0)


def test_concurrent_donations_record_once(cfg):
    matcher, repo = _matcher([make_donor("DNR-1", total_donations=0)], cfg)

    def attempt(_):
        try:
            matcher.record_donation("DNR-1", location="Apollo")
            return True
        except StaleCandidateState:
            return False

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(16)))

    assert outcomes.count(True) == 1
    donor = repo.get_donor("DNR-1")
    assert donor.total_donations == 1
    assert len(donor.donation_history) == 1


def test_cooldown_comes_from_config(cfg):
    cfg.cooldown_days["whole_blood"] = 7
    donor = make_donor("DNR-1", last_donation=TODAY - timedelta(days=10))
    matcher, _ = _matcher([donor], cfg)
    assert [d.donor_id for d in matcher.find_matches("O+", "Karnataka", "high")] == ["DNR-1"]


def test_profile_score():
    donor = make_donor(
        total_donations=15, response_rate=92, calls_to_donations_ratio=0.85, tier=DonorTier.emergency
    )
    assert donor_profile_score(donor) == 85
    assert donor_profile_score(make_donor(total_donations=100, response_rate=100,
                                          calls_to_donations_ratio=1, tier=DonorTier.emergency)) == 100


def test_predict_availability():
    donor = make_donor(
        total_donations=15,
        response_rate=92,
        tier=DonorTier.emergency,
        last_active=TODAY - timedelta(days=2),
        last_donation=TODAY - timedelta(days=90),
    )
    prediction = predict_availability(donor, TODAY, cooldown_days=56)
    assert prediction["probability"] == 1.0
    assert prediction["confidence"] == 0.8
    assert prediction["factors"] == [
        "High response rate",
        "Experienced donor",
        "Emergency donor",
        "Recently active",
        "Eligible for donation",
    ]

    cooling = make_donor(response_rate=70, total_donations=2, last_donation=TODAY - timedelta(days=5))
    prediction = predict_availability(cooling, TODAY, cooldown_days=56)
    assert prediction["probability"] == 0.2
    assert "Not yet eligible" in prediction["factors"]


def test_donor_statistics():
    donors = [
        make_donor("DNR-1", blood_type="O+", tier=DonorTier.emergency, total_donations=3),
        make_donor("DNR-2", blood_type="A+", region="Gujarat", total_donations=4,
                   availability=AvailabilityStatus.unavailable),
        make_donor("DNR-3", blood_type="O+", total_donations=5, verification_status=VerificationStatus.pending),
    ]
    stats = donor_statistics(donors)
    assert stats["total_donors"] == 3
    assert stats["available_donors"] == 2
    assert stats["verified_donors"] == 2
    assert stats["emergency_donors"] == 1
    assert stats["blood_type_distribution"] == {"A+": 1, "O+": 2}
    assert stats["region_distribution"] == {"Gujarat": 1, "Karnataka": 2}
    assert stats["total_donations"] == 12
    assert donor_statistics([])["total_donors"] == 0


def test_search_top_and_followup(cfg):
    donors = [
        make_donor("DNR-1", name="Lakshmi Rao", last_active=TODAY - timedelta(days=40), total_donations=1),
        make_donor("DNR-2", name="Suresh Kumar", city="Mysore", total_donations=20, last_active=TODAY),
        make_donor("DNR-3", name="Anita Reddy", last_active=None, total_donations=8),
    ]
    matcher, _ = _matcher(donors, cfg)

    assert [d.donor_id for d in matcher.search_donors("mysore")] == ["DNR-2"]
    assert [d.donor_id for d in matcher.search_donors("RAO")] == ["DNR-1"]
    assert [d.donor_id for d in matcher.top_donors(limit=2)] == ["DNR-2", "DNR-3"]
    assert {d.donor_id for d in matcher.donors_needing_followup()} == {"DNR-1", "DNR-3"}


def test_donation_record_defaults():
    record = DonationRecord(donation_id="DON-1", donated_on=TODAY, location="Apollo")
    assert record.units == 1
    assert record.recipient_type == "patient"


def test_followup_only_covers_verified_donors(cfg):
    donors = [
        make_donor("DNR-OLD", last_active=TODAY - timedelta(days=45)),
        make_donor("DNR-NEW", last_active=TODAY - timedelta(days=12)),
        make_donor("DNR-UNVERIFIED", last_active=TODAY - timedelta(days=90),
                   verification_status=VerificationStatus.pending),
        make_donor("DNR-REJECTED", last_active=None, verification_status=VerificationStatus.rejected),
    ]
    matcher, _ = _matcher(donors, cfg)

    assert [d.donor_id for d in matcher.donors_needing_followup()] == ["DNR-OLD"]
    assert [d.donor_id for d in matcher.donors_needing_followup(days=10)] == ["DNR-OLD", "DNR-NEW"]
    later = TODAY + timedelta(days=30)
    assert [d.donor_id for d in matcher.donors_needing_followup(today=later)] == ["DNR-OLD", "DNR-NEW"]
