"""
Synthetic roster generation for doctors and donors.
Supports persisting generated rosters to disk and re-loading them so the
matching engines can run on prebuilt or externally supplied datasets.
"""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path
from random import Random
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .config import BLOOD_TYPES, REGIONS, SPECIALIZATIONS, MatchingConfig
from .models import AvailabilityStatus, Doctor, Donor, DonorTier, VerificationStatus

DEFAULT_DATA_DIR = Path(__file__).resolve().parents[2] / "data"
DOCTORS_CSV = "doctors.csv"
DONORS_CSV = "donors.csv"

FIRST_NAMES = ["Aarav", "Priya", "Rohan", "Ananya", "Vikram", "Meera", "Arjun", "Kavya", "Sanjay", "Lakshmi"]
LAST_NAMES = ["Sharma", "Patel", "Reddy", "Iyer", "Desai", "Kulkarni", "Rao", "Shah", "Nair", "Gupta"]
REGION_CODES = {
    "Maharashtra": "MH",
    "Gujarat": "GJ",
    "Karnataka": "KA",
    "Goa": "GA",
    "Rajasthan": "RJ",
    "Madhya Pradesh": "MP",
    "Tamil Nadu": "TN",
    "Andhra Pradesh": "AP",
}
# Rough population shares of the ABO/Rh groups.
BLOOD_TYPE_WEIGHTS = [0.02, 0.37, 0.01, 0.22, 0.02, 0.32, 0.005, 0.035]


def _name(rng: Random) -> str:
    return f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"


def generate_doctors(cfg: MatchingConfig, regions: Optional[List[str]] = None) -> List[Doctor]:
    rng = Random(cfg.seed + 999)
    doctors: List[Doctor] = []
    for region in regions or REGIONS:
        code = REGION_CODES.get(region, region[:2].upper())
        for i in range(cfg.doctors_per_region):
            capacity = rng.choice([20, 30, 40, 50])
            doctors.append(
                Doctor(
                    doctor_id=f"DOC-{code}-{i + 1:03d}",
                    name=f"Dr. {_name(rng)}",
                    region=region,
                    specialization=rng.choices(SPECIALIZATIONS, weights=[0.35, 0.15, 0.2, 0.2, 0.1])[0],
                    availability=AvailabilityStatus.available if rng.random() < 0.85 else AvailabilityStatus.unavailable,
                    current_load=rng.randint(0, capacity),
                    max_capacity=capacity,
                    is_trainer=rng.random() < 0.2,
                    experience_years=int(np.clip(rng.normalvariate(12, 6), 1, 35)),
                    response_rate=round(rng.uniform(60, 99), 1),
                )
            )
    return doctors


def generate_donors(cfg: MatchingConfig, today: date, regions: Optional[List[str]] = None) -> List[Donor]:
    rng = Random(cfg.seed)
    donors: List[Donor] = []
    for region in regions or REGIONS:
        code = REGION_CODES.get(region, region[:2].upper())
        for i in range(cfg.donors_per_region):
            total = rng.randint(0, 25)
            last_donation = today - timedelta(days=rng.randint(5, 240)) if total else None
            donors.append(
                Donor(
                    donor_id=f"DNR-{code}-{i + 1:03d}",
                    name=_name(rng),
                    region=region,
                    blood_type=rng.choices(BLOOD_TYPES, weights=BLOOD_TYPE_WEIGHTS)[0],
                    tier=rng.choices(list(DonorTier), weights=[0.25, 0.25, 0.5])[0],
                    availability=rng.choices(list(AvailabilityStatus), weights=[0.75, 0.15, 0.1])[0],
                    last_donation=last_donation,
                    total_donations=total,
                    response_rate=round(float(np.clip(rng.normalvariate(85, 8), 40, 100)), 1),
                    calls_to_donations_ratio=round(rng.uniform(0.5, 0.95), 2),
                    medical_clearance=rng.random() < 0.95,
                    verification_status=rng.choices(list(VerificationStatus), weights=[0.85, 0.12, 0.03])[0],
                    last_active=today - timedelta(days=rng.randint(0, 60)),
                    city=region,
                    phone=f"+91-98765{rng.randint(0, 99999):05d}",
                    email=f"donor{code.lower()}{i + 1:03d}@example.org",
                )
            )
    return donors


# ---------------- Persistence helpers ----------------


def doctors_to_df(doctors: List[Doctor]) -> pd.DataFrame:
    records = []
    for d in doctors:
        records.append(
            {
                "doctor_id": d.doctor_id,
                "name": d.name,
                "region": d.region,
                "specialization": d.specialization,
                "availability": d.availability.value,
                "current_load": d.current_load,
                "max_capacity": d.max_capacity,
                "is_trainer": d.is_trainer,
                "experience_years": d.experience_years,
                "response_rate": d.response_rate,
            }
        )
    return pd.DataFrame.from_records(records)


def donors_to_df(donors: List[Donor]) -> pd.DataFrame:
    records = []
    for d in donors:
        records.append(
            {
                "donor_id": d.donor_id,
                "name": d.name,
                "region": d.region,
                "blood_type": d.blood_type,
                "tier": d.tier.value,
                "availability": d.availability.value,
                "last_donation": d.last_donation,
                "total_donations": d.total_donations,
                "response_rate": d.response_rate,
                "calls_to_donations_ratio": d.calls_to_donations_ratio,
                "medical_clearance": d.medical_clearance,
                "verification_status": d.verification_status.value,
                "last_active": d.last_active,
                "city": d.city,
                "phone": d.phone,
                "email": d.email,
            }
        )
    return pd.DataFrame.from_records(records)


def save_roster(doctors: List[Doctor], donors: List[Donor], out_dir: Path = DEFAULT_DATA_DIR) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    doctors_to_df(doctors).to_csv(out_dir / DOCTORS_CSV, index=False)
    donors_to_df(donors).to_csv(out_dir / DONORS_CSV, index=False)


def _optional_date(value) -> Optional[date]:
    return pd.to_datetime(value).date() if pd.notna(value) and value != "" else None


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _doctor_from_row(row: pd.Series) -> Doctor:
    return Doctor(
        doctor_id=str(row["doctor_id"]),
        name=str(row["name"]),
        region=str(row["region"]),
        specialization=str(row["specialization"]),
        availability=AvailabilityStatus(row["availability"]),
        current_load=int(row["current_load"]),
        max_capacity=int(row["max_capacity"]),
        is_trainer=_as_bool(row["is_trainer"]),
        experience_years=int(row["experience_years"]),
        response_rate=float(row["response_rate"]),
    )


def _donor_from_row(row: pd.Series) -> Donor:
    return Donor(
        donor_id=str(row["donor_id"]),
        name=str(row["name"]),
        region=str(row["region"]),
        blood_type=str(row["blood_type"]),
        tier=DonorTier(row["tier"]),
        availability=AvailabilityStatus(row["availability"]),
        last_donation=_optional_date(row["last_donation"]),
        total_donations=int(row["total_donations"]),
        response_rate=float(row["response_rate"]),
        calls_to_donations_ratio=float(row["calls_to_donations_ratio"]),
        medical_clearance=_as_bool(row["medical_clearance"]),
        verification_status=VerificationStatus(row.get("verification_status", VerificationStatus.verified.value)),
        last_active=_optional_date(row["last_active"]),
        city=str(row["city"]) if pd.notna(row["city"]) else "",
        phone=str(row["phone"]) if pd.notna(row["phone"]) else "",
        email=str(row["email"]) if pd.notna(row["email"]) else "",
    )


def load_roster(data_dir: Path = DEFAULT_DATA_DIR) -> Tuple[List[Doctor], List[Donor]]:
    doctors_path = data_dir / DOCTORS_CSV
    donors_path = data_dir / DONORS_CSV
    if not (doctors_path.exists() and donors_path.exists()):
        raise FileNotFoundError(f"Missing doctors/donors CSV under {data_dir}")

    doc_df = pd.read_csv(doctors_path, dtype={"doctor_id": str}, float_precision="round_trip")
    donor_df = pd.read_csv(donors_path, dtype={"donor_id": str, "phone": str}, float_precision="round_trip")

    doctors = [_doctor_from_row(r) for _, r in doc_df.iterrows()]
    donors = [_donor_from_row(r) for _, r in donor_df.iterrows()]
    return doctors, donors
