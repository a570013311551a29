"""State manager for the key=value files shared between steps."""

import os
from pathlib import Path
from typing import Dict, Optional

from eks_bootstrap.utils.errors import PrerequisiteError, StateError
from eks_bootstrap.utils.logging import get_logger

from .models import (
    AccessKeyCredentials,
    CacheCredentials,
    DatabaseCredentials,
    Endpoint,
    NetworkOutputs,
)

logger = get_logger(__name__)

NETWORK_FILE = ".eks-network-info"
GITHUB_CREDENTIALS_FILE = ".eks-github-credentials"
DB_CREDENTIALS_FILE = ".fcg-db-credentials"
DB_ENDPOINTS_FILE = ".fcg-db-endpoints"


def parse_env(text: str) -> Dict[str, str]:
    """Parse ``KEY=value`` lines, ignoring blanks and comments."""
    values = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip()
    return values


def format_env(values: Dict[str, str]) -> str:
    return "".join(f"{key}={value}\n" for key, value in values.items())


class StateManager:
    """Reads and writes the local state files of the runbooks.

    Every write goes to a temporary file that is renamed over the target, and
    merges keep the keys already present for other resources.
    """

    def __init__(self, state_dir: str = "."):
        """
        Initialize StateManager.

        Args:
            state_dir: Directory holding the state files
        """
        self.state_dir = Path(state_dir)

    def path(self, name: str) -> Path:
        return self.state_dir / name

    def exists(self, name: str) -> bool:
        return self.path(name).exists()

    def read(self, name: str) -> Dict[str, str]:
        """
        Read a state file.

        Returns:
            Mapping of keys to values, empty if the file does not exist

        Raises:
            StateError: If the file exists but cannot be read
        """
        path = self.path(name)
        if not path.exists():
            return {}
        try:
            return parse_env(path.read_text())
        except OSError as e:
            raise StateError(f"Failed to read state file {path}: {e}", cause=e)

    def write(self, name: str, values: Dict[str, str]) -> None:
        """
        Replace a state file atomically.

        Raises:
            StateError: If the file cannot be written
        """
        path = self.path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_name(path.name + ".tmp")
        try:
            # Files may hold secrets
            fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(format_env(values))
            os.chmod(temp_path, 0o600)
            temp_path.replace(path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise StateError(f"Failed to write state file {path}: {e}", cause=e)
        logger.debug(f"Wrote {len(values)} key(s) to {path}")

    def merge(self, name: str, values: Dict[str, str]) -> Dict[str, str]:
        """Merge ``values`` into a state file and return the full contents."""
        merged = self.read(name)
        merged.update(values)
        self.write(name, merged)
        return merged

    # Network

    def network(self) -> NetworkOutputs:
        """
        Load the network identifiers written by the network step.

        Raises:
            PrerequisiteError: If the network step has not been run
        """
        values = self.read(NETWORK_FILE)
        if "VPC_ID" not in values or "SUBNET1_ID" not in values:
            raise PrerequisiteError(
                f"Network state file {self.path(NETWORK_FILE)} not found or incomplete",
                required_step="step 1 (network)",
            )
        return NetworkOutputs.from_env(values)

    def has_network(self) -> bool:
        values = self.read(NETWORK_FILE)
        return "VPC_ID" in values and "SUBNET1_ID" in values

    def save_network(self, outputs: NetworkOutputs) -> None:
        self.write(NETWORK_FILE, outputs.to_env())

    # CI/CD user access keys

    def github_credentials(self) -> Optional[AccessKeyCredentials]:
        values = self.read(GITHUB_CREDENTIALS_FILE)
        if "GITHUB_ACCESS_KEY" not in values or "GITHUB_SECRET_KEY" not in values:
            return None
        return AccessKeyCredentials.from_env(values)

    def save_github_credentials(self, credentials: AccessKeyCredentials) -> None:
        self.write(GITHUB_CREDENTIALS_FILE, credentials.to_env())

    # Databases and cache

    def database_credentials(self, prefix: str) -> Optional[DatabaseCredentials]:
        return DatabaseCredentials.from_env(prefix, self.read(DB_CREDENTIALS_FILE))

    def save_database_credentials(self, credentials: DatabaseCredentials) -> None:
        self.merge(DB_CREDENTIALS_FILE, credentials.to_env())

    def save_cache_credentials(self, credentials: CacheCredentials) -> None:
        self.merge(DB_CREDENTIALS_FILE, credentials.to_env())

    def save_endpoint(self, endpoint: Endpoint) -> None:
        """Record a discovered endpoint in the endpoints and credentials files."""
        self.merge(DB_ENDPOINTS_FILE, endpoint.to_env())
        credentials = self.read(DB_CREDENTIALS_FILE)
        if any(key.startswith(f"{endpoint.prefix}_") for key in credentials):
            self.merge(DB_CREDENTIALS_FILE, {f"{endpoint.prefix}_ENDPOINT": endpoint.address})
