"""
Donor matching: rank locally sourced, compatible and eligible donors for a
blood requirement, and record donations against the pool.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

import pandas as pd

from .compatibility import compatible_donor_types, is_valid_blood_type, normalize_blood_type
from .config import WHOLE_BLOOD, DonorWeights, MatchingConfig
from .eligibility import days_since, is_eligible, next_eligible_date
from .errors import InvalidRequestData
from .models import AvailabilityStatus, DonationRecord, Donor, DonorTier, Priority, ScoreResult
from .repository import CandidateProvider
from .scoring import Factor, rank, score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchContext:
    urgency: Priority
    today: date
    recency_window_days: int


def donor_factors(weights: DonorWeights) -> List[Factor]:
    def reliability(donor: Donor, ctx: MatchContext) -> float:
        return donor.response_rate / 100 * weights.reliability_cap

    def history(donor: Donor, ctx: MatchContext) -> float:
        return donor.total_donations * weights.points_per_donation

    def conversion(donor: Donor, ctx: MatchContext) -> float:
        return donor.calls_to_donations_ratio * weights.conversion_cap

    def tier(donor: Donor, ctx: MatchContext) -> float:
        table = weights.urgent_tier_bonus if ctx.urgency.is_urgent else weights.routine_tier_bonus
        return table.get(donor.tier.value, 0.0)

    def recency(donor: Donor, ctx: MatchContext) -> float:
        if donor.last_active is None:
            return 0.0
        if 0 <= days_since(donor.last_active, ctx.today) < ctx.recency_window_days:
            return weights.recency_bonus
        return 0.0

    return [
        Factor("reliability", weights.reliability_cap, reliability),
        Factor("history", weights.history_cap, history),
        Factor("conversion", weights.conversion_cap, conversion),
        Factor("tier", weights.tier_cap, tier),
        Factor("recency", weights.recency_bonus, recency),
    ]


def _coerce_urgency(urgency) -> Priority:
    try:
        return Priority(urgency)
    except ValueError:
        raise InvalidRequestData(f"Unknown urgency {urgency!r}") from None


@dataclass
class DonorMatcher:
    repository: CandidateProvider
    cfg: MatchingConfig = field(default_factory=MatchingConfig)
    clock: Callable[[], date] = date.today
    donation_type: str = WHOLE_BLOOD

    def __post_init__(self):
        self.factors = donor_factors(self.cfg.donor_weights)

    @property
    def cooldown_days(self) -> int:
        return self.cfg.cooldown_for(self.donation_type)

    def is_selectable(self, donor: Donor, today: date) -> bool:
        return (
            donor.is_available
            and donor.medical_clearance
            and is_eligible(donor.last_donation, self.cooldown_days, today)
        )

    def score_matches(
        self, blood_type_needed: str, region: str, urgency, units_required: int = 1
    ) -> List[Tuple[Donor, ScoreResult]]:
        if not is_valid_blood_type(blood_type_needed):
            raise InvalidRequestData(f"Unknown blood type {blood_type_needed!r}")
        if not isinstance(region, str) or not region.strip():
            raise InvalidRequestData("A region is required to match donors")
        if not isinstance(units_required, int) or units_required < 1:
            raise InvalidRequestData(f"units_required must be a positive integer, got {units_required!r}")
        urgency = _coerce_urgency(urgency)

        today = self.clock()
        donor_types = set(compatible_donor_types(blood_type_needed))
        pool = [
            d
            for d in self.repository.list_donors(region)
            if normalize_blood_type(d.blood_type) in donor_types and self.is_selectable(d, today)
        ]
        ctx = MatchContext(urgency=urgency, today=today, recency_window_days=self.cfg.recency_window_days)
        by_id = {d.donor_id: d for d in pool}
        results = [score(d.donor_id, d, ctx, self.factors) for d in pool]
        volume = {d.donor_id: d.total_donations for d in pool}
        ranked = rank(results, volume)[: self.cfg.match_limit(units_required)]
        logger.debug("Matched %d donors for %s in %s (%s)", len(ranked), blood_type_needed, region, urgency.value)
        return [(by_id[r.candidate_id], r) for r in ranked]

    def find_matches(
        self, blood_type_needed: str, region: str, urgency, units_required: int = 1
    ) -> List[Donor]:
        return [d for d, _ in self.score_matches(blood_type_needed, region, urgency, units_required)]

    def record_donation(
        self,
        donor_id: str,
        location: str,
        units: int = 1,
        recipient_type: str = "patient",
        recipient_id: Optional[str] = None,
        notes: Optional[str] = None,
        donated_on: Optional[date] = None,
    ) -> Donor:
        if units < 1:
            raise InvalidRequestData(f"A donation must be at least one unit, got {units}")
        today = self.clock()
        record = DonationRecord(
            donation_id=f"DON-{uuid4().hex[:12]}",
            donated_on=donated_on or today,
            location=location,
            units=units,
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            notes=notes,
        )
        donor = self.repository.record_donation(donor_id, record, self.cooldown_days, today)
        logger.info("Recorded donation %s for donor %s; next eligible %s",
                    record.donation_id, donor_id, self.next_eligible(donor))
        return donor

    def update_availability(self, donor_id: str, status: AvailabilityStatus) -> None:
        self.repository.update_availability(donor_id, AvailabilityStatus(status), self.clock())

    def next_eligible(self, donor: Donor) -> Optional[date]:
        return next_eligible_date(donor.last_donation, self.cooldown_days)

    # ---------------- Pool insights ----------------

    def search_donors(self, query: str) -> List[Donor]:
        term = query.strip().lower()
        return [
            d
            for d in self.repository.list_donors()
            if term in d.name.lower()
            or term in d.donor_id.lower()
            or term in d.phone
            or term in d.email.lower()
            or term in d.city.lower()
        ]

    def top_donors(self, limit: int = 10) -> List[Donor]:
        donors = self.repository.list_donors()
        donors.sort(key=lambda d: (-donor_profile_score(d), d.donor_id))
        return donors[:limit]

    def donors_needing_followup(self, today: Optional[date] = None, days: Optional[int] = None) -> List[Donor]:
        """Verified donors not active within ``days`` (defaults to the configured follow-up window)."""
        today = today or self.clock()
        days = self.cfg.followup_window_days if days is None else days
        return [
            d
            for d in self.repository.list_donors()
            if d.is_verified and (d.last_active is None or days_since(d.last_active, today) > days)
        ]

    def predict_availability(self, donor: Donor) -> Dict[str, object]:
        return predict_availability(donor, self.clock(), self.cooldown_days, self.cfg.recency_window_days)


def donor_profile_score(donor: Donor) -> int:
    """0-100 standing of a donor, independent of any particular request."""
    points = min(donor.total_donations * 2, 40)
    points += donor.response_rate / 100 * 30
    points += donor.calls_to_donations_ratio * 20
    if donor.tier == DonorTier.emergency:
        points += 10
    elif donor.tier == DonorTier.bridge:
        points += 5
    return int(min(round(points), 100))


def predict_availability(
    donor: Donor, today: date, cooldown_days: int, recency_window_days: int = 7
) -> Dict[str, object]:
    probability = 0.5
    factors: List[str] = []

    probability += (donor.response_rate - 70) / 100
    if donor.response_rate > 85:
        factors.append("High response rate")
    if donor.total_donations > 10:
        probability += 0.2
        factors.append("Experienced donor")
    if donor.tier == DonorTier.emergency:
        probability += 0.15
        factors.append("Emergency donor")
    if donor.last_active is not None and days_since(donor.last_active, today) < recency_window_days:
        probability += 0.1
        factors.append("Recently active")
    if is_eligible(donor.last_donation, cooldown_days, today):
        probability += 0.1
        factors.append("Eligible for donation")
    else:
        probability -= 0.3
        factors.append("Not yet eligible")

    probability = max(0.0, min(1.0, probability))

    confidence = 0.7
    if len(donor.donation_history) > 5:
        confidence += 0.1
    if donor.total_donations > 15:
        confidence += 0.1
    if donor.response_rate > 90:
        confidence += 0.1

    return {
        "probability": round(probability, 2),
        "confidence": round(confidence, 2),
        "factors": factors,
    }


def donor_statistics(donors: List[Donor]) -> Dict[str, object]:
    if not donors:
        return {
            "total_donors": 0,
            "available_donors": 0,
            "verified_donors": 0,
            "emergency_donors": 0,
            "blood_type_distribution": {},
            "region_distribution": {},
            "average_score": 0,
            "total_donations": 0,
        }
    records = []
    for d in donors:
        records.append(
            {
                "blood_type": d.blood_type,
                "region": d.region,
                "available": d.is_available,
                "verified": d.is_verified,
                "emergency": d.tier == DonorTier.emergency,
                "total_donations": d.total_donations,
                "profile_score": donor_profile_score(d),
            }
        )
    df = pd.DataFrame.from_records(records)
    return {
        "total_donors": int(len(df)),
        "available_donors": int(df["available"].sum()),
        "verified_donors": int(df["verified"].sum()),
        "emergency_donors": int(df["emergency"].sum()),
        "blood_type_distribution": {k: int(v) for k, v in df["blood_type"].value_counts().sort_index().items()},
        "region_distribution": {k: int(v) for k, v in df["region"].value_counts().sort_index().items()},
        "average_score": int(round(df["profile_score"].mean())),
        "total_donations": int(df["total_donations"].sum()),
    }
