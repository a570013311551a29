"""Step drivers for the cluster, security group and database runbooks."""

from typing import Callable, Dict, List, Optional

from eks_bootstrap.config.catalog import CLUSTER_ROLE_POLICIES, NODE_ROLE_POLICIES
from eks_bootstrap.config.models import AppConfig
from eks_bootstrap.provisioners.base import EnsureResult, ProgressCallback
from eks_bootstrap.provisioners.database import DatabaseProvisioner, generate_password
from eks_bootstrap.provisioners.eks import EKSProvisioner
from eks_bootstrap.provisioners.iam import IAMProvisioner
from eks_bootstrap.provisioners.kubectl import KubectlConfigurator
from eks_bootstrap.provisioners.network import NetworkProvisioner
from eks_bootstrap.provisioners.security_group import SecurityGroupInfo, SecurityGroupProvisioner
from eks_bootstrap.reporting.reports import ReportRenderer
from eks_bootstrap.state.manager import (
    DB_CREDENTIALS_FILE,
    DB_ENDPOINTS_FILE,
    GITHUB_CREDENTIALS_FILE,
    NETWORK_FILE,
    StateManager,
)
from eks_bootstrap.state.models import Endpoint
from eks_bootstrap.utils.errors import ConfigurationError, ErrorContext, WaitCancelledError
from eks_bootstrap.utils.logging import LogContext, get_logger
from eks_bootstrap.utils.waiter import Waiter

from .prerequisites import PrerequisiteChecker
from .steps import EksStep, RunbookResult

logger = get_logger(__name__)

CACHE_KEY = 'redis'


class Runbook:
    """Common wiring of the three runbooks."""

    name = ''

    def __init__(
        self,
        clients,
        config: AppConfig,
        state: StateManager,
        waiter: Optional[Waiter] = None,
        progress: Optional[ProgressCallback] = None,
        checker: Optional[PrerequisiteChecker] = None,
        reporter: Optional[ReportRenderer] = None,
    ):
        """
        Args:
            clients: AWSClientManager (or compatible) providing boto3 clients
            config: Application configuration
            state: Local state store shared between steps
            waiter: Waiter for asynchronous resources and delays
            progress: Optional callback for resource progress events
            checker: Prerequisite checker run once before the first step;
                no check is made when omitted
            reporter: Report renderer, created from config and state if omitted
        """
        self.clients = clients
        self.config = config
        self.state = state
        self.waiter = waiter or Waiter()
        self.progress = progress
        self.checker = checker
        self.reporter = reporter or ReportRenderer(config, state)
        self._checked = False

    def _provisioner_kwargs(self) -> dict:
        return {'waiter': self.waiter, 'progress': self.progress}

    def check_prerequisites(self) -> None:
        if self.checker is not None and not self._checked:
            self.checker.ensure(self.name)
            self._checked = True

    @staticmethod
    def _unknown_key(kind: str, key: str, valid: List[str]) -> ConfigurationError:
        return ConfigurationError(
            f"Unknown {kind} '{key}'",
            context=ErrorContext(resource_id=key, resource_type=kind),
            suggestions=[f"Valid values: {', '.join(valid)}"],
        )


class EksRunbook(Runbook):
    """Seven-step cluster runbook: network, IAM, cluster and node group."""

    name = 'eks'

    def __init__(self, clients, config: AppConfig, state: StateManager,
                 kubectl: Optional[KubectlConfigurator] = None, **kwargs):
        super().__init__(clients, config, state, **kwargs)
        provisioner_kwargs = self._provisioner_kwargs()
        self.network = NetworkProvisioner(clients, config, **provisioner_kwargs)
        self.iam = IAMProvisioner(clients, config, **provisioner_kwargs)
        self.eks = EKSProvisioner(clients, config, **provisioner_kwargs)
        self.kubectl = kubectl or KubectlConfigurator(config)

        self.steps: Dict[EksStep, Callable[[RunbookResult], None]] = {
            EksStep.NETWORK: self.create_network,
            EksStep.IAM_ROLES: self.create_iam_roles,
            EksStep.ADMIN_USER: self.create_admin_user,
            EksStep.CICD_USER: self.create_cicd_user,
            EksStep.PROPAGATION: self.wait_propagation,
            EksStep.CLUSTER: self.create_cluster,
            EksStep.NODE_GROUP: self.create_node_group,
        }

    def run_step(self, step: EksStep, result: Optional[RunbookResult] = None) -> RunbookResult:
        """Run a single step.

        Args:
            step: Step to run
            result: Result to accumulate into, a new one if omitted

        Returns:
            RunbookResult with the resources the step ensured
        """
        step = EksStep(step)
        result = result or RunbookResult(self.name)
        self.check_prerequisites()

        logger.info(f"STEP {step.value}/{len(EksStep)}: {step.title}")
        with LogContext(runbook=self.name, operation=step.name.lower()):
            self.steps[step](result)
        logger.info(f"Step {step.value} complete")
        return result.finish()

    def run_all(self) -> RunbookResult:
        """Run every step in order, then write the report."""
        result = RunbookResult(self.name)
        for step in EksStep:
            self.run_step(step, result)
        result.report_path = str(self.write_report())
        logger.info(f"Deployment complete, see {result.report_path}")
        return result.finish()

    def write_report(self):
        return self.reporter.write('eks', account_id=self.clients.get_account_id())

    # Steps

    def create_network(self, result: RunbookResult) -> None:
        ensured, outputs = self.network.ensure_network()
        result.add(ensured)

        if outputs is None:
            if self.state.has_network():
                logger.info("Existing VPC found, keeping recorded network state")
                return
            logger.info("Existing VPC found without local state, discovering its resources")
            outputs = self.network.discover(ensured.identifier)

        self.state.save_network(outputs)
        logger.info(f"Network information saved to {self.state.path(NETWORK_FILE)}")

    def create_iam_roles(self, result: RunbookResult) -> None:
        result.add(self.iam.ensure_role(
            self.config.resource_name('cluster-role'), 'eks.amazonaws.com', CLUSTER_ROLE_POLICIES
        ))
        result.add(self.iam.ensure_role(
            self.config.resource_name('node-role'), 'ec2.amazonaws.com', NODE_ROLE_POLICIES
        ))

    def create_admin_user(self, result: RunbookResult) -> None:
        result.add(self.iam.ensure_user_with_policy(
            self.config.resource_name('admin'),
            self.config.resource_name('AdminPolicy'),
            self.config.iam.admin_policy,
        ))

    def create_cicd_user(self, result: RunbookResult) -> None:
        user_name = self.config.resource_name('github-cicd')
        result.add(self.iam.ensure_user_with_policy(
            user_name,
            self.config.resource_name('GitHubCICDPolicy'),
            self.config.iam.cicd_policy,
        ))

        credentials = self.iam.create_access_key_if_missing(user_name)
        if credentials is not None:
            self.state.save_github_credentials(credentials)
            logger.info(f"Access keys saved to {self.state.path(GITHUB_CREDENTIALS_FILE)}")
        elif self.state.github_credentials() is None:
            logger.warning(f"Access keys of {user_name} exist but are not recorded locally")

    def wait_propagation(self, result: RunbookResult) -> None:
        delay = self.config.waits.propagation_delay
        logger.info(f"Waiting {int(delay)}s for IAM propagation...")
        if not self.waiter.pause(delay):
            raise WaitCancelledError("IAM propagation wait was cancelled")

    def _role_arn(self, suffix: str) -> Callable[[], str]:
        return lambda: self.iam.role_arn(self.config.resource_name(suffix))

    def create_cluster(self, result: RunbookResult) -> None:
        result.add(self.eks.ensure_cluster(self.state.network, self._role_arn('cluster-role')))

    def create_node_group(self, result: RunbookResult) -> None:
        node_group = self.eks.ensure_node_group(self.state.network, self._role_arn('node-role'))
        result.add(node_group)
        if node_group.created:
            self.kubectl.configure()
        else:
            logger.info("Node group already exists, kubeconfig left unchanged")


class SecurityGroupRunbook(Runbook):
    """Creates the application security groups of the catalogue."""

    name = 'sg'

    def __init__(self, clients, config: AppConfig, state: StateManager, **kwargs):
        super().__init__(clients, config, state, **kwargs)
        provisioner_kwargs = self._provisioner_kwargs()
        self.network = NetworkProvisioner(clients, config, **provisioner_kwargs)
        self.security_groups = SecurityGroupProvisioner(clients, config, **provisioner_kwargs)
        self._vpc_id: Optional[str] = None

    @property
    def keys(self) -> List[str]:
        return list(self.config.security_groups)

    def vpc_id(self) -> str:
        if self._vpc_id is None:
            self._vpc_id = self.network.resolve_vpc()
            logger.info(f"Using VPC {self._vpc_id}")
        return self._vpc_id

    def run_group(self, key: str, result: Optional[RunbookResult] = None) -> RunbookResult:
        """Ensure one catalogue security group.

        Raises:
            ConfigurationError: If ``key`` is not in the catalogue
        """
        if key not in self.config.security_groups:
            raise self._unknown_key('security group', key, self.keys)
        result = result or RunbookResult(self.name)
        self.check_prerequisites()

        spec = self.config.security_groups[key]
        with LogContext(runbook=self.name, operation=key):
            ensured = self.security_groups.ensure_group(spec, self.vpc_id())
        result.add(ensured)
        logger.info(f"Security group {spec.name} configured ({ensured.identifier})")
        return result.finish()

    def run_all(self) -> RunbookResult:
        result = RunbookResult(self.name)
        for key in self.keys:
            self.run_group(key, result)
        result.report_path = str(self.write_report())
        return result.finish()

    def write_report(self):
        return self.reporter.write('sg', vpc_id=self.vpc_id())

    def list_groups(self) -> List[SecurityGroupInfo]:
        return self.security_groups.list_project_groups()


class DatabaseRunbook(Runbook):
    """Creates the catalogue databases and the cache, then records endpoints."""

    name = 'db'

    def __init__(self, clients, config: AppConfig, state: StateManager, **kwargs):
        super().__init__(clients, config, state, **kwargs)
        self.databases = DatabaseProvisioner(clients, config, **self._provisioner_kwargs())

    @property
    def keys(self) -> List[str]:
        keys = list(self.config.databases.catalog)
        if self.config.cache.enabled:
            keys.append(CACHE_KEY)
        return keys

    def run_database(self, key: str, result: Optional[RunbookResult] = None) -> RunbookResult:
        """Ensure one catalogue database, or the cache for ``redis``.

        Raises:
            ConfigurationError: If ``key`` is not a configured database
        """
        if key not in self.keys:
            raise self._unknown_key('database', key, self.keys)
        result = result or RunbookResult(self.name)
        self.check_prerequisites()

        with LogContext(runbook=self.name, operation=key):
            if key == CACHE_KEY:
                result.add(self._ensure_cache())
            else:
                result.add(self._ensure_database(key))
        return result.finish()

    def run_all(self) -> RunbookResult:
        """Create every database and the cache, wait for them and record endpoints."""
        result = RunbookResult(self.name)
        for key in self.keys:
            self.run_database(key, result)
        self.wait_all()
        self.update_endpoints()
        result.report_path = str(self.write_report())
        return result.finish()

    def write_report(self):
        return self.reporter.write('db')

    def _password_for(self, prefix: str) -> Callable[[], str]:
        def password() -> str:
            existing = self.state.database_credentials(prefix)
            if existing is not None:
                logger.info(f"Reusing recorded password for {prefix}")
                return existing.password
            return generate_password(self.config.databases.password_length)
        return password

    def _ensure_database(self, key: str) -> EnsureResult:
        spec = self.config.databases.catalog[key]
        ensured, credentials = self.databases.ensure_database(spec, self._password_for(spec.env_prefix))
        if credentials is not None:
            self.state.save_database_credentials(credentials)
            logger.warning(f"Password for {spec.identifier} saved to {self.state.path(DB_CREDENTIALS_FILE)}")
        return ensured

    def _ensure_cache(self) -> EnsureResult:
        ensured, credentials = self.databases.ensure_cache()
        if credentials is not None:
            self.state.save_cache_credentials(credentials)
            logger.info("Endpoint will be available after creation completes")
        return ensured

    def wait_all(self) -> None:
        """Wait for every existing database and then the cache to become available."""
        logger.info("Waiting for databases to become available (this can take 10-15 minutes)...")
        for spec in self.config.databases.catalog.values():
            if self.databases.find_database(spec.identifier):
                self.databases.wait_for_database(spec.identifier)

        if self.config.cache.enabled and self.databases.find_cache(self.config.cache.cluster_id):
            self.databases.wait_for_cache()
        logger.info("All databases are available")

    def update_endpoints(self) -> List[Endpoint]:
        """Discover endpoints and record them in the state files."""
        endpoints = []
        for spec in self.config.databases.catalog.values():
            endpoint = self.databases.database_endpoint(spec)
            if endpoint:
                endpoints.append(endpoint)

        if self.config.cache.enabled:
            endpoint = self.databases.cache_endpoint()
            if endpoint:
                endpoints.append(endpoint)

        for endpoint in endpoints:
            self.state.save_endpoint(endpoint)
            logger.info(f"{endpoint.prefix}: {endpoint.address}:{endpoint.port}")
        logger.info(f"Endpoints saved to {self.state.path(DB_ENDPOINTS_FILE)}")
        return endpoints
