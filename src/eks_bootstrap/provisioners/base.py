"""Base provisioner with the existence-check-then-create pattern."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from botocore.exceptions import ClientError

from eks_bootstrap.config.models import AppConfig
from eks_bootstrap.utils.errors import error_code
from eks_bootstrap.utils.logging import LogContext, get_logger
from eks_bootstrap.utils.waiter import Waiter, WaitResult

logger = get_logger(__name__)


class ChangeType(Enum):
    """What ``ensure`` did for a resource."""
    CREATE = "create"
    SKIP = "skip"


class ResourceEvent(Enum):
    """Progress events emitted while provisioning."""
    CREATING = "creating"
    CREATED = "created"
    SKIPPED = "skipped"
    WAITING = "waiting"
    READY = "ready"


# (resource name, event, optional detail)
ProgressCallback = Callable[[str, ResourceEvent, Optional[str]], None]


@dataclass
class EnsureResult:
    """Outcome of an idempotent create."""

    kind: str
    name: str
    identifier: str
    change_type: ChangeType

    @property
    def created(self) -> bool:
        return self.change_type == ChangeType.CREATE


def probe(call: Callable[[], Optional[str]], not_found_codes: List[str]) -> Optional[str]:
    """Run an existence probe, mapping "not found" error codes to None.

    Any other provider error propagates.
    """
    try:
        return call()
    except ClientError as e:
        if error_code(e) in not_found_codes:
            return None
        raise


def tag_list(tags: Dict[str, str]) -> List[Dict[str, str]]:
    """Convert a tag mapping to the ``[{'Key': .., 'Value': ..}]`` form."""
    return [{'Key': k, 'Value': v} for k, v in tags.items()]


class BaseProvisioner:
    """Base class for all resource provisioners.

    Subclasses build ``exists_fn``/``create_fn`` pairs for their resource kinds
    and hand them to :meth:`ensure`. Existing resources are never compared
    with the desired configuration.
    """

    def __init__(
        self,
        clients,
        config: AppConfig,
        waiter: Optional[Waiter] = None,
        progress: Optional[ProgressCallback] = None,
    ):
        """Initialize provisioner.

        Args:
            clients: AWSClientManager (or compatible) providing boto3 clients
            config: Application configuration
            waiter: Waiter used for asynchronous resources
            progress: Optional callback for progress events
        """
        self.clients = clients
        self.config = config
        self.waiter = waiter or Waiter()
        self.progress = progress

    def emit(self, name: str, event: ResourceEvent, detail: Optional[str] = None) -> None:
        if self.progress:
            self.progress(name, event, detail)

    def ensure(
        self,
        kind: str,
        name: str,
        create_fn: Callable[[], str],
        exists_fn: Callable[[str], Optional[str]],
    ) -> EnsureResult:
        """Create a resource unless it already exists.

        Args:
            kind: Resource kind for logging (e.g. 'iam-role')
            name: Deterministic resource name used as the existence key
            create_fn: Issues the creation call and returns the new identifier
            exists_fn: Returns the existing identifier or None

        Returns:
            EnsureResult with the identifier and whether it was created
        """
        with LogContext(resource_id=name, resource_type=kind):
            existing = exists_fn(name)
            if existing is not None:
                logger.warning(f"{kind} {name} already exists. Skipping creation.")
                self.emit(name, ResourceEvent.SKIPPED, existing)
                return EnsureResult(kind, name, existing, ChangeType.SKIP)

            logger.info(f"Creating {kind} {name}...")
            self.emit(name, ResourceEvent.CREATING, kind)
            identifier = create_fn()
            logger.info(f"Created {kind} {name}: {identifier}")
            self.emit(name, ResourceEvent.CREATED, identifier)
            return EnsureResult(kind, name, identifier, ChangeType.CREATE)

    def wait(
        self,
        name: str,
        kind: str,
        status_fn: Callable[[], Optional[str]],
        success: str,
        failures: List[str],
        timeout: float,
    ) -> WaitResult:
        """Block until ``status_fn`` reports ``success``.

        Raises:
            WaitFailedError: On a failure status
            WaitTimeoutError: When ``timeout`` elapses first
        """
        logger.info(f"Waiting for {kind} {name} to become {success} (timeout {int(timeout)}s)...")

        def on_poll(status: Optional[str], elapsed: float) -> None:
            self.emit(name, ResourceEvent.WAITING, f"{status} | {int(elapsed)}s")

        result = self.waiter.wait_for(
            status_fn,
            success=success,
            failures=failures,
            timeout=timeout,
            interval=self.config.waits.poll_interval,
            on_poll=on_poll,
        )
        result.raise_for_outcome(name, kind)
        logger.info(f"{kind} {name} is {success}")
        self.emit(name, ResourceEvent.READY, success)
        return result

    def tags(self, name: Optional[str] = None, **extra: str) -> Dict[str, str]:
        tags = self.config.base_tags(name)
        tags.update(extra)
        return tags
