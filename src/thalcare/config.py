"""
Centralized matching defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import pandas as pd

BLOOD_TYPES: List[str] = ["O-", "O+", "A-", "A+", "B-", "B+", "AB-", "AB+"]
REGIONS: List[str] = [
    "Maharashtra",
    "Gujarat",
    "Karnataka",
    "Goa",
    "Rajasthan",
    "Madhya Pradesh",
    "Tamil Nadu",
    "Andhra Pradesh",
]
SPECIALIZATIONS: List[str] = [
    "Hematology",
    "Pediatric Hematology",
    "Emergency Medicine",
    "Internal Medicine",
    "General Practice",
]

# Neighbours are listed in fallback order.
DEFAULT_REGION_ADJACENCY: Dict[str, List[str]] = {
    "Maharashtra": ["Gujarat", "Karnataka", "Goa"],
    "Gujarat": ["Maharashtra", "Rajasthan", "Madhya Pradesh"],
    "Karnataka": ["Maharashtra", "Tamil Nadu", "Andhra Pradesh"],
}

WHOLE_BLOOD = "whole_blood"

LOG_LEVEL = os.getenv("THALCARE_LOG_LEVEL", "INFO")


@dataclass
class DoctorWeights:
    # request kind -> (specialization keyword, bonus)
    specialization_bonus: Dict[str, tuple] = field(
        default_factory=lambda: {
            "blood_request": ("Hematology", 50.0),
            "consultation": ("Hematology", 40.0),
            "emergency": ("Emergency", 60.0),
        }
    )
    specialization_cap: float = 60.0
    points_per_experience_year: float = 2.0
    experience_cap: float = 30.0
    load_headroom_cap: float = 20.0
    trainer_critical_bonus: float = 30.0


@dataclass
class DonorWeights:
    reliability_cap: float = 30.0
    points_per_donation: float = 2.0
    history_cap: float = 40.0
    conversion_cap: float = 20.0
    # tier -> bonus, split by whether the requirement is urgent. The urgent
    # emergency bonus must exceed every other donor factor combined plus the
    # bridge bonus, so emergency donors always lead urgent matches.
    urgent_tier_bonus: Dict[str, float] = field(
        default_factory=lambda: {"emergency": 120.0, "bridge": 10.0, "regular": 0.0}
    )
    routine_tier_bonus: Dict[str, float] = field(
        default_factory=lambda: {"emergency": 10.0, "bridge": 5.0, "regular": 0.0}
    )
    tier_cap: float = 120.0
    recency_bonus: float = 10.0


@dataclass
class MatchingConfig:
    doctor_weights: DoctorWeights = field(default_factory=DoctorWeights)
    donor_weights: DonorWeights = field(default_factory=DonorWeights)
    region_adjacency: Dict[str, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_REGION_ADJACENCY.items()}
    )
    cooldown_days: Dict[str, int] = field(default_factory=lambda: {WHOLE_BLOOD: 56})
    recency_window_days: int = 7
    followup_window_days: int = 30
    max_matches: int = 10
    matches_per_unit: int = 3
    # synthetic roster
    seed: int = 42
    doctors_per_region: int = 4
    donors_per_region: int = 25

    def cooldown_for(self, donation_type: str = WHOLE_BLOOD) -> int:
        try:
            return self.cooldown_days[donation_type]
        except KeyError:
            raise KeyError(f"No cooldown configured for donation type {donation_type!r}") from None

    def neighbors_of(self, region: str) -> List[str]:
        return list(self.region_adjacency.get(region, []))

    def match_limit(self, units_required: int) -> int:
        return min(self.max_matches, units_required * self.matches_per_unit)


def load_region_adjacency(path: Path) -> Dict[str, List[str]]:
    """
    Read a ``region,neighbor`` CSV. Row order within a region is the fallback order.
    """
    df = pd.read_csv(path, dtype=str)
    missing = {"region", "neighbor"} - set(df.columns)
    if missing:
        raise ValueError(f"Adjacency file {path} is missing columns: {sorted(missing)}")
    adjacency: Dict[str, List[str]] = {}
    for _, row in df.dropna(subset=["region", "neighbor"]).iterrows():
        region = row["region"].strip()
        neighbor = row["neighbor"].strip()
        neighbors = adjacency.setdefault(region, [])
        if neighbor != region and neighbor not in neighbors:
            neighbors.append(neighbor)
    return adjacency
