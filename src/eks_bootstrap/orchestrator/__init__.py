"""Runbook orchestration: step drivers, prerequisite checks and verification."""

from .steps import EksStep, RunbookResult
from .prerequisites import PrerequisiteChecker
from .verifier import CheckResult, VerificationReport, Verifier
from .runbooks import DatabaseRunbook, EksRunbook, Runbook, SecurityGroupRunbook

__all__ = [
    "EksStep",
    "RunbookResult",
    "PrerequisiteChecker",
    "CheckResult",
    "VerificationReport",
    "Verifier",
    "Runbook",
    "EksRunbook",
    "SecurityGroupRunbook",
    "DatabaseRunbook",
]
