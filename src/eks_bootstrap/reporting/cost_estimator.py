"""Static monthly cost estimates for the provisioned resources."""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from eks_bootstrap.config.models import AppConfig
from eks_bootstrap.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CostEstimate:
    """Line items of a monthly estimate in USD."""

    runbook: str
    items: List[Tuple[str, float]] = field(default_factory=list)

    @property
    def total(self) -> float:
        return sum(amount for _, amount in self.items)


class CostEstimator:
    """Estimates monthly costs of each runbook's resources."""

    # Approximate monthly costs (USD) for the default sizing, not fetched
    # from the AWS Pricing API
    COST_ESTIMATES: Dict[str, Dict[str, float]] = {
        'eks': {
            'cluster': 72.00,
            'nodes': 15.00,
            'networking': 2.00,
        },
        'db': {
            'rds': 60.00,
            'cache': 15.00,
            'storage': 8.00,
            'backup': 2.00,
        },
        'sg': {},
    }

    def __init__(self, config: AppConfig):
        self.config = config

    def estimate(self, runbook: str) -> CostEstimate:
        """
        Estimate the monthly cost of a runbook.

        Args:
            runbook: One of 'eks', 'sg' or 'db'

        Returns:
            CostEstimate with labelled line items
        """
        costs = self.COST_ESTIMATES[runbook]
        estimate = CostEstimate(runbook)

        if runbook == 'eks':
            node_group = self.config.cluster.node_group
            estimate.items = [
                ("EKS Cluster", costs['cluster']),
                (f"EC2 Nodes ({node_group.desired_size}x {node_group.instance_type})", costs['nodes']),
                ("VPC/Networking", costs['networking']),
            ]
        elif runbook == 'db':
            databases = len(self.config.databases.catalog)
            instance_class = self.config.databases.instance_class.replace('db.', '')
            estimate.items = [
                (f"RDS {instance_class} ({databases} instances)", costs['rds']),
                (f"Storage ({self.config.databases.allocated_storage}GB x {databases})", costs['storage']),
                ("Backup storage", costs['backup']),
            ]
            if self.config.cache.enabled:
                estimate.items.insert(1, (f"ElastiCache {self.config.cache.node_type.replace('cache.', '')}",
                                          costs['cache']))
        else:
            estimate.items = [("Security groups", 0.0)]

        logger.debug(f"Estimated monthly cost for {runbook}: ${estimate.total:.2f}")
        return estimate
