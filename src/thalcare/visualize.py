"""
Lightweight visualizations of the donor pool for quick inspection.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import matplotlib

# Use a non-interactive backend to avoid display issues in headless environments.
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd


def plot_donor_overview(df: pd.DataFrame, outfile: Optional[Path] = None) -> None:
    fig, axes = plt.subplots(2, 2, figsize=(12, 8))

    df["blood_type"].value_counts().sort_index().plot(kind="bar", ax=axes[0, 0], color="tab:red")
    axes[0, 0].set_title("Donors by blood type")

    pd.crosstab(df["region"], df["availability"]).plot(kind="bar", stacked=True, ax=axes[0, 1])
    axes[0, 1].set_title("Availability by region")

    df["total_donations"].plot(kind="hist", bins=20, ax=axes[1, 0], color="tab:green")
    axes[1, 0].set_title("Lifetime donations")

    df["tier"].value_counts().plot(kind="bar", ax=axes[1, 1], color="tab:purple")
    axes[1, 1].set_title("Donor tiers")

    plt.tight_layout()
    if outfile:
        plt.savefig(outfile, dpi=150)
    else:
        plt.show()
    plt.close(fig)
