"""Utility modules for logging, AWS client management, errors and waits."""

from eks_bootstrap.utils.aws_client import AWSClientManager, AWSCredentials
from eks_bootstrap.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DeploymentError,
    ConfigurationError,
    CredentialError,
    PrerequisiteCheckError,
    PrerequisiteError,
    StateError,
    ProvisioningError,
    WaitFailedError,
    WaitTimeoutError,
    WaitCancelledError,
    ErrorHandler,
    error_handler
)
from eks_bootstrap.utils.logging import get_logger, setup_logging, LogContext
from eks_bootstrap.utils.waiter import Waiter, WaitOutcome, WaitResult

__all__ = [
    # AWS Client
    'AWSClientManager',
    'AWSCredentials',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DeploymentError',
    'ConfigurationError',
    'CredentialError',
    'PrerequisiteCheckError',
    'PrerequisiteError',
    'StateError',
    'ProvisioningError',
    'WaitFailedError',
    'WaitTimeoutError',
    'WaitCancelledError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',

    # Waits
    'Waiter',
    'WaitOutcome',
    'WaitResult',
]
