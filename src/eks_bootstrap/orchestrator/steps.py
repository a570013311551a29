"""Step identifiers and results shared by the runbooks."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import List, Optional

from eks_bootstrap.provisioners.base import EnsureResult


class EksStep(IntEnum):
    """Ordered steps of the cluster runbook."""
    NETWORK = 1
    IAM_ROLES = 2
    ADMIN_USER = 3
    CICD_USER = 4
    PROPAGATION = 5
    CLUSTER = 6
    NODE_GROUP = 7

    @property
    def title(self) -> str:
        return STEP_TITLES[self]


STEP_TITLES = {
    EksStep.NETWORK: "Creating network infrastructure",
    EksStep.IAM_ROLES: "Creating IAM roles",
    EksStep.ADMIN_USER: "Creating admin user",
    EksStep.CICD_USER: "Creating CI/CD user",
    EksStep.PROPAGATION: "Waiting for IAM propagation",
    EksStep.CLUSTER: "Creating EKS cluster",
    EksStep.NODE_GROUP: "Creating node group",
}


@dataclass
class RunbookResult:
    """Resources touched by one runbook invocation."""

    runbook: str
    results: List[EnsureResult] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    report_path: Optional[str] = None

    def add(self, result: EnsureResult) -> EnsureResult:
        self.results.append(result)
        return result

    def finish(self) -> "RunbookResult":
        self.end_time = datetime.now()
        return self

    @property
    def created(self) -> List[EnsureResult]:
        return [r for r in self.results if r.created]

    @property
    def skipped(self) -> List[EnsureResult]:
        return [r for r in self.results if not r.created]

    @property
    def duration(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()
