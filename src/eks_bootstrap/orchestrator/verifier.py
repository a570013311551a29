"""Read-only verification of the resources created by each runbook."""

import shutil
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from eks_bootstrap.config.models import AppConfig
from eks_bootstrap.provisioners.database import DatabaseProvisioner
from eks_bootstrap.provisioners.eks import EKSProvisioner
from eks_bootstrap.provisioners.iam import IAMProvisioner
from eks_bootstrap.provisioners.network import NetworkProvisioner
from eks_bootstrap.provisioners.security_group import SecurityGroupProvisioner
from eks_bootstrap.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CheckResult:
    """Outcome of one verification or prerequisite check."""

    name: str
    passed: bool
    detail: str = ""
    warning: bool = False


@dataclass
class VerificationReport:
    """Collected check results of a runbook."""

    runbook: str
    checks: List[CheckResult] = field(default_factory=list)

    def add(self, name: str, passed: bool, detail: str = "", warning: bool = False) -> CheckResult:
        check = CheckResult(name, passed, detail, warning)
        self.checks.append(check)
        if not passed:
            logger.error(f"{name}: {detail}")
        elif warning:
            logger.warning(f"{name}: {detail}")
        else:
            logger.info(f"{name}: {detail}")
        return check

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)

    @property
    def failures(self) -> List[CheckResult]:
        return [check for check in self.checks if not check.passed]


class Verifier:
    """Checks that the resources of a runbook exist and are usable."""

    def __init__(
        self,
        clients,
        config: AppConfig,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.clients = clients
        self.config = config
        self.which = which

    def verify_eks(self) -> VerificationReport:
        report = VerificationReport('eks')
        eks = EKSProvisioner(self.clients, self.config)
        iam = IAMProvisioner(self.clients, self.config)
        network = NetworkProvisioner(self.clients, self.config)

        cluster = eks.describe_cluster()
        if cluster and cluster['status'] == 'ACTIVE':
            report.add(f"Cluster {self.config.cluster_name}", True,
                       f"ACTIVE (version {cluster.get('version', 'unknown')})")
        else:
            report.add(f"Cluster {self.config.cluster_name}", False,
                       f"not active: {cluster['status'] if cluster else 'NOT_FOUND'}")

        node_group_name = self.config.cluster.node_group.name
        node_group = eks.describe_node_group()
        if node_group and node_group['status'] == 'ACTIVE':
            instance_types = node_group.get('instanceTypes') or ['unknown']
            desired = node_group.get('scalingConfig', {}).get('desiredSize', '?')
            report.add(f"Node group {node_group_name}", True,
                       f"ACTIVE ({instance_types[0]}, desired {desired})")
        else:
            report.add(f"Node group {node_group_name}", False,
                       f"not active: {node_group['status'] if node_group else 'NOT_FOUND'}")

        kubectl = self.which('kubectl')
        report.add("kubectl", kubectl is not None, kubectl or "not installed")

        for suffix in ('admin', 'github-cicd'):
            name = self.config.resource_name(suffix)
            arn = iam.find_user(name)
            report.add(f"IAM user {name}", arn is not None, arn or "not found")

        for suffix in ('cluster-role', 'node-role'):
            name = self.config.resource_name(suffix)
            arn = iam.find_role(name)
            report.add(f"IAM role {name}", arn is not None, arn or "not found")

        vpc_id = network.find_vpc(network.vpc_name)
        report.add(f"VPC {network.vpc_name}", vpc_id is not None, vpc_id or "not found")
        return report

    def verify_security_groups(self) -> VerificationReport:
        report = VerificationReport('sg')
        provisioner = SecurityGroupProvisioner(self.clients, self.config)

        for spec in self.config.security_groups.values():
            info = provisioner.describe_group(spec.name)
            if info:
                report.add(f"Security group {spec.name}", True,
                           f"{info.group_id}, {info.rule_count} rule(s)")
            else:
                report.add(f"Security group {spec.name}", False, "not found")
        return report

    def verify_databases(self) -> VerificationReport:
        """Check every catalogue database and the cache.

        A resource that exists but is not ``available`` yet passes with a
        warning.
        """
        report = VerificationReport('db')
        provisioner = DatabaseProvisioner(self.clients, self.config)

        for spec in self.config.databases.catalog.values():
            instance = provisioner.describe_database(spec.identifier)
            if instance is None:
                report.add(f"Database {spec.identifier}", False, "not found")
                continue
            status = instance['DBInstanceStatus']
            report.add(f"Database {spec.identifier}", True,
                       f"{instance.get('Engine', spec.engine)} - {status}",
                       warning=status != 'available')

        if self.config.cache.enabled:
            cluster_id = self.config.cache.cluster_id
            cluster = provisioner.describe_cache(cluster_id)
            if cluster is None:
                report.add(f"Cache {cluster_id}", False, "not found")
            else:
                status = cluster['CacheClusterStatus']
                report.add(f"Cache {cluster_id}", True, f"redis - {status}",
                           warning=status != 'available')
        return report

    def verify(self, runbook: str) -> VerificationReport:
        verifiers = {
            'eks': self.verify_eks,
            'sg': self.verify_security_groups,
            'db': self.verify_databases,
        }
        return verifiers[runbook]()
