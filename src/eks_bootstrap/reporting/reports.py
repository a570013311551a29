"""Plain-text summary reports written after each runbook."""

from datetime import datetime
from pathlib import Path
from typing import List, Optional

from eks_bootstrap.config.models import AppConfig
from eks_bootstrap.state.manager import (
    DB_CREDENTIALS_FILE,
    DB_ENDPOINTS_FILE,
    GITHUB_CREDENTIALS_FILE,
    NETWORK_FILE,
    StateManager,
)
from eks_bootstrap.utils.errors import StateError
from eks_bootstrap.utils.logging import get_logger

from .cost_estimator import CostEstimate, CostEstimator

logger = get_logger(__name__)

REPORT_FILES = {
    'eks': 'eks-deployment-report.txt',
    'sg': 'security-groups-report.txt',
    'db': 'database-report.txt',
}

RULE = "=" * 76
NOT_AVAILABLE = "N/A"


class ReportRenderer:
    """Renders runbook summaries from configuration and local state.

    Secret values (secret access keys, database passwords) are never
    rendered; reports point at the state files instead.
    """

    def __init__(self, config: AppConfig, state: StateManager, output_dir: Optional[str] = None):
        """
        Args:
            config: Application configuration
            state: State manager used to read identifiers
            output_dir: Directory for report files, defaults to the state directory
        """
        self.config = config
        self.state = state
        self.output_dir = Path(output_dir) if output_dir else state.state_dir
        self.costs = CostEstimator(config)

    def render(self, runbook: str, **kwargs) -> str:
        renderers = {
            'eks': self.render_eks,
            'sg': self.render_security_groups,
            'db': self.render_databases,
        }
        return renderers[runbook](**kwargs)

    def write(self, runbook: str, **kwargs) -> Path:
        """Render a report and write it to its file.

        Returns:
            Path of the written report

        Raises:
            StateError: If the report cannot be written
        """
        path = self.output_dir / REPORT_FILES[runbook]
        content = self.render(runbook, **kwargs)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        except OSError as e:
            raise StateError(f"Failed to write report {path}: {e}", cause=e)
        logger.info(f"Report saved to {path}")
        return path

    # Sections

    @staticmethod
    def _section(title: str, lines: List[str]) -> List[str]:
        return [RULE, title, RULE] + [f"   {line}" if line else "" for line in lines] + [""]

    @staticmethod
    def _cost_lines(estimate: CostEstimate) -> List[str]:
        lines = [f"{label}: ~${amount:.2f}/month" for label, amount in estimate.items]
        lines.append("-" * 40)
        lines.append(f"TOTAL ESTIMATE: ~${estimate.total:.2f}/month")
        return lines

    def _header(self, title: str) -> List[str]:
        return [f"{title} - {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", ""]

    # Runbooks

    def render_eks(self, account_id: Optional[str] = None) -> str:
        config = self.config
        region = config.project.region
        node_group = config.cluster.node_group
        network = self.state.read(NETWORK_FILE)
        github = self.state.read(GITHUB_CREDENTIALS_FILE)

        subnet_lines = []
        for index, subnet in enumerate(config.network.subnets, 1):
            subnet_id = network.get(f"SUBNET{index}_ID", NOT_AVAILABLE)
            subnet_lines.append(f"Subnet {index}: {subnet_id} ({region}{subnet.az_suffix})")

        lines = self._header("EKS DEPLOYMENT REPORT")
        lines += self._section("CLUSTER", [
            f"Cluster name: {config.cluster_name}",
            f"AWS region: {region}",
            f"Kubernetes version: {config.cluster.version}",
            f"Account ID: {account_id or NOT_AVAILABLE}",
            f"Instance type: {node_group.instance_type}",
            f"Desired nodes: {node_group.desired_size}",
        ])
        lines += self._section("INFRASTRUCTURE", [
            f"VPC ID: {network.get('VPC_ID', NOT_AVAILABLE)}",
            *subnet_lines,
            f"Security group: {network.get('SG_ID', NOT_AVAILABLE)}",
        ])
        lines += self._section("USERS AND ROLES", [
            f"Admin user: {config.resource_name('admin')}",
            f"CI/CD user: {config.resource_name('github-cicd')}",
            f"Cluster role: {config.resource_name('cluster-role')}",
            f"Node role: {config.resource_name('node-role')}",
        ])
        lines += self._section("CI/CD CREDENTIALS", [
            f"AWS_ACCESS_KEY_ID: {github.get('GITHUB_ACCESS_KEY', NOT_AVAILABLE)}",
            f"AWS_SECRET_ACCESS_KEY: [see {GITHUB_CREDENTIALS_FILE}]",
            f"AWS_REGION: {region}",
            f"EKS_CLUSTER_NAME: {config.cluster_name}",
        ])
        lines += self._section("ESTIMATED MONTHLY COSTS", self._cost_lines(self.costs.estimate('eks')))
        lines += self._section("VERIFICATION COMMANDS", [
            "kubectl get nodes",
            "kubectl get pods -A",
            "kubectl cluster-info",
            f"aws eks describe-cluster --name {config.cluster_name} --region {region}",
            "eks-bootstrap eks --verify",
        ])
        return "\n".join(lines)

    def render_security_groups(self, vpc_id: Optional[str] = None) -> str:
        config = self.config
        lines = self._header("SECURITY GROUPS REPORT")
        lines += self._section("GENERAL", [
            f"Project: {config.prefix}",
            f"AWS region: {config.project.region}",
            f"VPC ID: {vpc_id or NOT_AVAILABLE}",
        ])

        group_lines = []
        for index, (key, spec) in enumerate(config.security_groups.items(), 1):
            group_lines.append(f"{index}. {spec.name} ({key})")
            group_lines.append(f"   {spec.description}")
            for rule in spec.rules:
                scope = "external" if rule.cidr == "0.0.0.0/0" else "internal"
                group_lines.append(f"   - {rule.port} ({rule.name}) - {scope} ({rule.cidr})")
            if spec.warning:
                group_lines.append(f"   WARNING: {spec.warning}")
            group_lines.append("")
        lines += self._section("SECURITY GROUPS", group_lines)

        lines += self._section("ESTIMATED MONTHLY COSTS", self._cost_lines(self.costs.estimate('sg')))
        lines += self._section("VERIFICATION COMMANDS", [
            f'aws ec2 describe-security-groups --filters "Name=tag:Project,Values={config.prefix}"',
            "eks-bootstrap sg --verify",
            "eks-bootstrap sg --list",
        ])
        return "\n".join(lines)

    def render_databases(self) -> str:
        config = self.config
        settings = config.databases
        endpoints = self.state.read(DB_ENDPOINTS_FILE)

        lines = self._header("DATABASE REPORT")
        lines += self._section("GENERAL", [
            f"Project: {config.prefix}",
            f"AWS region: {config.project.region}",
            f"DB instance class: {settings.instance_class}",
            f"Cache node type: {config.cache.node_type}",
        ])

        db_lines = []
        for index, spec in enumerate(settings.catalog.values(), 1):
            db_lines += [
                f"{index}. {spec.identifier} ({spec.engine} {spec.engine_version})",
                f"   Database: {spec.db_name}",
                f"   Port: {spec.port}",
                f"   Endpoint: {endpoints.get(f'{spec.env_prefix}_ENDPOINT', NOT_AVAILABLE)}",
                f"   Usage: {spec.description or spec.application}",
                f"   Storage: {settings.allocated_storage}GB ({settings.storage_type})",
                f"   Backup: {settings.backup_retention_days} days",
                "",
            ]
        if config.cache.enabled:
            cache = config.cache
            db_lines += [
                f"{len(settings.catalog) + 1}. {cache.cluster_id} (redis {cache.engine_version})",
                f"   Port: {cache.port}",
                f"   Endpoint: {endpoints.get(f'{cache.env_prefix}_ENDPOINT', NOT_AVAILABLE)}",
                f"   Node type: {cache.node_type}",
                f"   Nodes: {cache.num_nodes}",
                "",
            ]
        lines += self._section("DATABASES", db_lines)

        lines += self._section("SECURITY", [
            "Storage encrypted",
            "Internal (VPC) access only, not publicly accessible",
            "Automatic backups enabled",
            "Multi-AZ disabled",
        ])
        lines += self._section("CREDENTIALS", [
            f"Username: {settings.username}",
            f"Passwords: see {DB_CREDENTIALS_FILE}",
            f"Endpoints: see {DB_ENDPOINTS_FILE}",
        ])
        lines += self._section("ESTIMATED MONTHLY COSTS", self._cost_lines(self.costs.estimate('db')))
        lines += self._section("VERIFICATION COMMANDS", [
            "aws rds describe-db-instances --query "
            "'DBInstances[*].[DBInstanceIdentifier,DBInstanceStatus,Engine]'",
            "aws elasticache describe-cache-clusters --query "
            "'CacheClusters[*].[CacheClusterId,CacheClusterStatus]'",
            "eks-bootstrap db --verify",
            "eks-bootstrap db --credentials",
        ])
        return "\n".join(lines)
