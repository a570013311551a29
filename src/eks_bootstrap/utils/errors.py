"""Error handling framework for provisioning runs."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError
from eks_bootstrap.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur during provisioning."""
    CONFIGURATION = "configuration"
    AWS = "aws"
    NETWORK = "network"
    STATE = "state"
    PREREQUISITE = "prerequisite"
    PROVISIONING = "provisioning"
    CREDENTIAL = "credential"
    PERMISSION = "permission"
    RESOURCE_LIMIT = "resource_limit"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Run cannot continue
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ErrorContext:
    """Context information for an error."""
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    operation: Optional[str] = None
    request_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class DeploymentError(Exception):
    """Base exception for provisioning errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize deployment error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.resource_id:
            lines.append(f"   Resource: {self.context.resource_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'resource_id': self.context.resource_id,
                'resource_type': self.context.resource_type,
                'operation': self.context.operation,
                'request_id': self.context.request_id,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(DeploymentError):
    """Error in configuration file or settings."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class CredentialError(DeploymentError):
    """Error related to AWS credentials."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CREDENTIAL,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class PrerequisiteCheckError(DeploymentError):
    """A required tool, credential or permission is missing."""

    def __init__(self, message: str, failed_checks: Optional[List[str]] = None, **kwargs):
        self.failed_checks = failed_checks or []
        super().__init__(
            message,
            category=ErrorCategory.PREREQUISITE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class PrerequisiteError(DeploymentError):
    """A step needs output that an earlier step has not persisted yet."""

    def __init__(self, message: str, required_step: Optional[str] = None, **kwargs):
        self.required_step = required_step
        suggestions = kwargs.pop('suggestions', None)
        if suggestions is None and required_step:
            suggestions = [f"Run {required_step} first"]
        super().__init__(
            message,
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            suggestions=suggestions,
            **kwargs
        )


class StateError(DeploymentError):
    """Error reading or writing local state files."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ProvisioningError(DeploymentError):
    """Error during resource provisioning."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.PROVISIONING,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class WaitFailedError(ProvisioningError):
    """A resource reached a failure status while being waited on."""

    def __init__(self, message: str, last_status: Optional[str] = None, **kwargs):
        self.last_status = last_status
        super().__init__(message, **kwargs)


class WaitTimeoutError(ProvisioningError):
    """A resource did not reach its target status within the timeout."""

    def __init__(self, message: str, last_status: Optional[str] = None, **kwargs):
        self.last_status = last_status
        super().__init__(message, **kwargs)


class WaitCancelledError(ProvisioningError):
    """The operator cancelled a wait."""


class ErrorHandler:
    """Handles and categorizes errors from AWS and other sources."""

    # Mapping of AWS error codes to error categories and suggestions
    AWS_ERROR_MAPPING = {
        'InvalidClientTokenId': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS credentials are invalid or expired',
            'suggestions': [
                'Check that your AWS credentials are correctly configured',
                'Verify credentials using: aws sts get-caller-identity',
            ]
        },
        'ExpiredToken': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS session token has expired',
            'suggestions': [
                'Refresh your AWS session credentials',
            ]
        },
        'AccessDenied': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check IAM policies attached to your user/role',
                'Run the --check action to see which services are reachable',
            ]
        },
        'AccessDeniedException': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check IAM policies attached to your user/role',
                'Run the --check action to see which services are reachable',
            ]
        },
        'UnauthorizedOperation': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Operation not authorized',
            'suggestions': [
                'Add the required IAM permission for this operation',
                'Verify you are operating in the correct AWS region',
            ]
        },
        'LimitExceeded': {
            'category': ErrorCategory.RESOURCE_LIMIT,
            'message': 'AWS service limit exceeded',
            'suggestions': [
                'Request a service limit increase through AWS Support',
                'Review and clean up unused resources',
            ]
        },
        'VpcLimitExceeded': {
            'category': ErrorCategory.RESOURCE_LIMIT,
            'message': 'VPC limit exceeded for this region',
            'suggestions': [
                'Delete unused VPCs or request a limit increase',
            ]
        },
        'InvalidParameterException': {
            'category': ErrorCategory.VALIDATION,
            'message': 'Invalid parameter value',
            'suggestions': [
                'Check the configuration values used for this resource',
            ]
        },
        'InvalidParameterValue': {
            'category': ErrorCategory.VALIDATION,
            'message': 'Invalid parameter value',
            'suggestions': [
                'Check the configuration values used for this resource',
            ]
        },
        'InvalidParameterCombination': {
            'category': ErrorCategory.VALIDATION,
            'message': 'Invalid parameter combination',
            'suggestions': [
                'Check engine version and instance class compatibility',
            ]
        },
        'UnsupportedAvailabilityZoneException': {
            'category': ErrorCategory.VALIDATION,
            'message': 'Availability zone cannot host the cluster control plane',
            'suggestions': [
                'Change the subnet availability zones in the network configuration',
            ]
        },
    }

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> DeploymentError:
        """Handle an exception and convert to DeploymentError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            DeploymentError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, DeploymentError):
            return error

        if isinstance(error, ClientError):
            return self._handle_aws_error(error, context)

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return CredentialError(
                message='No usable AWS credentials found',
                context=context,
                cause=error,
                suggestions=[
                    'Configure AWS credentials using: aws configure',
                    'Specify a profile with --profile',
                ]
            )

        return DeploymentError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check the log file for more details']
        )

    def _handle_aws_error(
        self,
        error: ClientError,
        context: ErrorContext
    ) -> DeploymentError:
        error_code = error.response.get('Error', {}).get('Code', 'Unknown')
        error_message = error.response.get('Error', {}).get('Message', str(error))
        request_id = error.response.get('ResponseMetadata', {}).get('RequestId')
        operation = getattr(error, 'operation_name', None)

        context.request_id = request_id
        if operation and not context.operation:
            context.operation = operation

        error_info = self.AWS_ERROR_MAPPING.get(error_code)

        if error_info:
            return DeploymentError(
                message=f"{error_info['message']}: {error_message}",
                category=error_info['category'],
                severity=ErrorSeverity.CRITICAL,
                context=context,
                cause=error,
                suggestions=error_info['suggestions']
            )

        return DeploymentError(
            message=f"AWS Error ({error_code}): {error_message}",
            category=ErrorCategory.AWS,
            severity=ErrorSeverity.CRITICAL,
            context=context,
            cause=error,
            suggestions=[
                'Check AWS documentation for this error code',
                f'AWS Request ID: {request_id}',
            ]
        )

    def log_error(self, error: DeploymentError):
        """Log an error with appropriate level."""
        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            logger.error(error.message)
        elif error.severity == ErrorSeverity.WARNING:
            logger.warning(error.message)
        else:
            logger.info(error.message)

        logger.debug(f"Error details: {error.to_dict()}")


def error_code(error: ClientError) -> str:
    """Return the AWS error code carried by a ClientError."""
    return error.response.get('Error', {}).get('Code', '')


# Global error handler instance
error_handler = ErrorHandler()
