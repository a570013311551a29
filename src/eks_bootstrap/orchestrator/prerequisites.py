"""Prerequisite checks run before a runbook touches any resource."""

import shutil
from typing import Callable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from eks_bootstrap.config.models import AppConfig
from eks_bootstrap.utils.errors import PrerequisiteCheckError
from eks_bootstrap.utils.logging import get_logger

from .verifier import CheckResult

logger = get_logger(__name__)

INSTALL_HINTS = {
    'aws': 'https://aws.amazon.com/cli/',
    'kubectl': 'https://kubernetes.io/docs/tasks/tools/',
}


class PrerequisiteChecker:
    """Verifies tools, credentials and basic permissions for a runbook."""

    def __init__(
        self,
        clients,
        config: AppConfig,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.clients = clients
        self.config = config
        self.which = which

    def check(self, runbook: str) -> List[CheckResult]:
        """Run every check relevant to ``runbook`` and collect the results.

        Args:
            runbook: One of 'eks', 'sg' or 'db'

        Returns:
            One CheckResult per check, in execution order
        """
        results = []
        if runbook == 'eks':
            for tool in self._required_tools():
                results.append(self._check_tool(tool))

        results.append(self._check_credentials())
        if not results[-1].passed:
            # Permission probes cannot succeed without credentials
            return results

        results.append(self._check_permission('EC2', 'ec2', 'describe_regions',
                                              RegionNames=[self.config.project.region]))
        if runbook == 'eks':
            results.append(self._check_permission('IAM', 'iam', 'get_account_summary'))
            results.append(self._check_permission('EKS', 'eks', 'list_clusters'))
        elif runbook == 'db':
            results.append(self._check_permission('RDS', 'rds', 'describe_db_instances', MaxRecords=20))
            results.append(self._check_permission('ElastiCache', 'elasticache',
                                                  'describe_cache_clusters', MaxRecords=20))
        return results

    def ensure(self, runbook: str) -> List[CheckResult]:
        """Run the checks and raise if any failed.

        Raises:
            PrerequisiteCheckError: Listing every failed check
        """
        results = self.check(runbook)
        failed = [r for r in results if not r.passed]
        if failed:
            raise PrerequisiteCheckError(
                "Some prerequisites are not met. Fix them before continuing.",
                failed_checks=[f"{r.name}: {r.detail}" for r in failed],
                suggestions=[f"{r.name}: {r.detail}" for r in failed],
            )
        logger.info("All prerequisites met")
        return results

    def _required_tools(self) -> List[str]:
        tools = []
        if self.config.kubectl.update_kubeconfig:
            tools.append('aws')
        if self.config.kubectl.update_kubeconfig or self.config.kubectl.create_admin_binding:
            tools.append('kubectl')
        return tools

    def _check_tool(self, tool: str) -> CheckResult:
        path = self.which(tool)
        if path:
            logger.info(f"{tool} found: {path}")
            return CheckResult(tool, True, path)
        logger.error(f"{tool} not found")
        return CheckResult(tool, False, f"not found, install from {INSTALL_HINTS[tool]}")

    def _check_credentials(self) -> CheckResult:
        try:
            credentials = self.clients.validate_credentials()
        except (BotoCoreError, ClientError) as e:
            return CheckResult('AWS credentials', False, f"not configured ({e}), run 'aws configure'")
        logger.info(f"Account: {credentials.account_id} | Identity: {credentials.user_arn} | "
                    f"Region: {self.config.project.region}")
        return CheckResult('AWS credentials', True, f"account {credentials.account_id}")

    def _check_permission(self, label: str, service: str, operation: str, **kwargs) -> CheckResult:
        try:
            getattr(self.clients.get_client(service), operation)(**kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"No {label} permissions: {e}")
            return CheckResult(f"{label} permissions", False, str(e))
        logger.info(f"{label} permissions OK")
        return CheckResult(f"{label} permissions", True, "OK")
