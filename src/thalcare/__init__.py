"""
Request routing and donor matching core for a thalassemia care network.

The ``thalcare`` console script runs :func:`main`.
"""

from .cli import app

__all__ = ["app", "main"]


def main() -> None:
    app()
