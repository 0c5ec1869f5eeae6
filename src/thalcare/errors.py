"""
Exceptions raised by the matching core.

An empty match or an unassigned request is a normal outcome and is returned
as ``None`` / ``[]`` rather than raised.
"""

from __future__ import annotations


class ThalcareError(Exception):
    pass


class InvalidRequestData(ThalcareError, ValueError):
    """A request is missing or has malformed routing fields."""


class InvalidStatusTransition(ThalcareError, ValueError):
    def __init__(self, current, target):
        super().__init__(f"Cannot move request from {current.value} to {target.value}")
        self.current = current
        self.target = target


class StaleCandidateState(ThalcareError, RuntimeError):
    """The chosen candidate changed between scoring and commit."""

    def __init__(self, candidate_id: str, reason: str):
        super().__init__(f"Candidate {candidate_id} is no longer selectable: {reason}")
        self.candidate_id = candidate_id
        self.reason = reason
