"""Local state files shared between runbook steps."""

from .manager import (
    StateManager,
    NETWORK_FILE,
    GITHUB_CREDENTIALS_FILE,
    DB_CREDENTIALS_FILE,
    DB_ENDPOINTS_FILE,
)
from .models import (
    AccessKeyCredentials,
    CacheCredentials,
    DatabaseCredentials,
    Endpoint,
    NetworkOutputs,
)

__all__ = [
    "StateManager",
    "NETWORK_FILE",
    "GITHUB_CREDENTIALS_FILE",
    "DB_CREDENTIALS_FILE",
    "DB_ENDPOINTS_FILE",
    "AccessKeyCredentials",
    "CacheCredentials",
    "DatabaseCredentials",
    "Endpoint",
    "NetworkOutputs",
]
