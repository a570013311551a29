"""Post-creation cluster access setup through the aws and kubectl CLIs."""

import subprocess
from dataclasses import dataclass
from typing import Callable, List

from eks_bootstrap.config.models import AppConfig
from eks_bootstrap.utils.errors import ErrorContext, ProvisioningError
from eks_bootstrap.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Exit status and output of an external command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_command(args: List[str]) -> CommandResult:
    """Run an external command and capture its output."""
    logger.debug(f"Running: {' '.join(args)}")
    try:
        completed = subprocess.run(args, capture_output=True, text=True, check=False)
    except FileNotFoundError as e:
        raise ProvisioningError(
            f"Command not found: {args[0]}",
            context=ErrorContext(operation=' '.join(args[:2])),
            cause=e,
            suggestions=[f"Install {args[0]} and make sure it is on PATH"],
        )
    return CommandResult(completed.returncode, completed.stdout, completed.stderr)


class KubectlConfigurator:
    """Writes the kubeconfig entry and the admin RBAC binding of the cluster."""

    def __init__(self, config: AppConfig, runner: Callable[[List[str]], CommandResult] = run_command):
        """
        Args:
            config: Application configuration
            runner: Executes a command line, replaceable in tests
        """
        self.config = config
        self.runner = runner

    @property
    def binding_name(self) -> str:
        return self.config.resource_name('admin-binding')

    def update_kubeconfig(self) -> None:
        """Add the cluster to the local kubeconfig.

        Raises:
            ProvisioningError: If the aws CLI fails
        """
        logger.info("Configuring kubectl...")
        result = self.runner([
            'aws', 'eks', 'update-kubeconfig',
            '--region', self.config.project.region,
            '--name', self.config.cluster_name,
        ])
        if not result.ok:
            raise ProvisioningError(
                f"aws eks update-kubeconfig failed: {result.stderr.strip()}",
                context=ErrorContext(resource_id=self.config.cluster_name, resource_type='eks-cluster',
                                     operation='update-kubeconfig'),
            )
        logger.info("kubectl configured")

    def create_admin_binding(self) -> bool:
        """Bind the admin user to the cluster-admin role.

        Returns:
            True if the binding was created, False if it could not be
            (most commonly because it already exists)
        """
        logger.info("Configuring RBAC for the admin user...")
        result = self.runner([
            'kubectl', 'create', 'clusterrolebinding', self.binding_name,
            '--clusterrole=cluster-admin',
            f"--user={self.config.resource_name('admin')}",
        ])
        if not result.ok:
            logger.warning(f"RBAC binding {self.binding_name} may already exist: {result.stderr.strip()}")
            return False
        logger.info(f"RBAC binding {self.binding_name} created")
        return True

    def configure(self) -> None:
        """Run the steps enabled in the kubectl configuration."""
        if self.config.kubectl.update_kubeconfig:
            self.update_kubeconfig()
        if self.config.kubectl.create_admin_binding:
            self.create_admin_binding()
