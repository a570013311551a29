"""AWS client management and session handling."""

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError
from typing import Optional, Dict, Any
from dataclasses import dataclass
from eks_bootstrap.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AWSCredentials:
    """AWS credential information."""
    account_id: str
    user_arn: str
    user_id: str
    region: str
    profile: Optional[str] = None


class AWSClientManager:
    """Manages the boto3 session and caches one client per service."""

    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        max_pool_connections: int = 10
    ):
        """Initialize AWS client manager.

        Args:
            profile: AWS profile name to use
            region: AWS region to use
            max_pool_connections: Maximum number of connections in the connection pool
        """
        self.profile = profile
        self.region = region
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._credentials: Optional[AWSCredentials] = None

        # Transport-level retries only; failed creations are never retried
        self._boto_config = Config(
            max_pool_connections=max_pool_connections,
            retries={
                'mode': 'adaptive',
                'max_attempts': 5
            },
            connect_timeout=10,
            read_timeout=60
        )

    @property
    def session(self) -> boto3.Session:
        """Get or create boto3 session."""
        if self._session is None:
            kwargs = {}
            if self.profile:
                kwargs['profile_name'] = self.profile
            if self.region:
                kwargs['region_name'] = self.region

            self._session = boto3.Session(**kwargs)
            logger.debug(f"Created AWS session - Region: {self._session.region_name}, "
                         f"Profile: {self.profile or 'default'}")

        return self._session

    def get_client(self, service_name: str):
        """Get boto3 client for a service.

        Args:
            service_name: AWS service name (e.g., 'ec2', 'iam', 'eks')

        Returns:
            Boto3 client for the service
        """
        if service_name in self._clients:
            return self._clients[service_name]

        client = self.session.client(service_name, config=self._boto_config)
        self._clients[service_name] = client

        logger.debug(f"Created {service_name} client")

        return client

    def validate_credentials(self) -> AWSCredentials:
        """Validate AWS credentials and return credential information.

        Returns:
            AWSCredentials object with account and user information

        Raises:
            NoCredentialsError: If no credentials are found
            PartialCredentialsError: If credentials are incomplete
            ClientError: If credentials are invalid
        """
        if self._credentials is not None:
            return self._credentials

        try:
            identity = self.get_client('sts').get_caller_identity()

            self._credentials = AWSCredentials(
                account_id=identity['Account'],
                user_arn=identity['Arn'],
                user_id=identity['UserId'],
                region=self.get_region(),
                profile=self.profile
            )

            logger.debug(f"AWS credentials validated - Account: {self._credentials.account_id}, "
                         f"User: {self._credentials.user_arn}, Region: {self._credentials.region}")

            return self._credentials

        except NoCredentialsError:
            logger.error("No AWS credentials found. Please configure credentials using "
                         "AWS CLI, environment variables, or IAM role.")
            raise
        except PartialCredentialsError as e:
            logger.error(f"Incomplete AWS credentials: {e}")
            raise
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code == 'InvalidClientTokenId':
                logger.error("AWS credentials are invalid or expired")
            else:
                logger.error(f"Failed to validate AWS credentials: {e}")
            raise

    def get_account_id(self) -> str:
        """Get the AWS account ID."""
        return self.validate_credentials().account_id

    def get_region(self) -> str:
        """Get the AWS region."""
        return self.region or self.session.region_name
