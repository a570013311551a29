"""IAM provisioner for cluster roles, users and their customer policies."""

import json
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from eks_bootstrap.state.models import AccessKeyCredentials
from eks_bootstrap.utils.logging import get_logger

from .base import BaseProvisioner, EnsureResult, probe, tag_list

logger = get_logger(__name__)


def trust_policy(service: str) -> Dict[str, Any]:
    """Assume-role policy document allowing ``service`` to assume the role."""
    return {
        'Version': '2012-10-17',
        'Statement': [
            {
                'Effect': 'Allow',
                'Principal': {'Service': service},
                'Action': 'sts:AssumeRole',
            }
        ],
    }


class IAMProvisioner(BaseProvisioner):
    """Provisioner for IAM roles, users, customer policies and access keys."""

    def __init__(self, clients, config, **kwargs):
        super().__init__(clients, config, **kwargs)
        self.iam_client = clients.get_client('iam')

    # Roles

    def ensure_role(self, name: str, service: str, policy_arns: List[str]) -> EnsureResult:
        """Create a service role and attach its managed policies.

        Policies are attached only when the role is created in this call.

        Args:
            name: Role name
            service: Service principal allowed to assume the role
            policy_arns: Managed policies to attach

        Returns:
            EnsureResult with the role ARN
        """

        def create() -> str:
            response = self.iam_client.create_role(
                RoleName=name,
                AssumeRolePolicyDocument=json.dumps(trust_policy(service)),
                Tags=tag_list(self.tags()),
            )
            for policy_arn in policy_arns:
                self.iam_client.attach_role_policy(RoleName=name, PolicyArn=policy_arn)
            return response['Role']['Arn']

        return self.ensure('iam-role', name, create, self.find_role)

    def find_role(self, name: str) -> Optional[str]:
        return probe(
            lambda: self.iam_client.get_role(RoleName=name)['Role']['Arn'],
            ['NoSuchEntity'],
        )

    def role_arn(self, name: str) -> str:
        """ARN of a role in the current account, whether or not it exists."""
        return f"arn:aws:iam::{self.clients.get_account_id()}:role/{name}"

    # Users and customer policies

    def ensure_user(self, name: str) -> EnsureResult:
        def create() -> str:
            response = self.iam_client.create_user(UserName=name, Tags=tag_list(self.tags()))
            return response['User']['Arn']

        return self.ensure('iam-user', name, create, self.find_user)

    def find_user(self, name: str) -> Optional[str]:
        return probe(
            lambda: self.iam_client.get_user(UserName=name)['User']['Arn'],
            ['NoSuchEntity'],
        )

    def policy_arn(self, name: str) -> str:
        return f"arn:aws:iam::{self.clients.get_account_id()}:policy/{name}"

    def ensure_policy(self, name: str, document: Dict[str, Any]) -> EnsureResult:
        """Create a customer-managed policy unless one with this name exists.

        Args:
            name: Policy name
            document: Policy document

        Returns:
            EnsureResult with the policy ARN
        """

        def create() -> str:
            response = self.iam_client.create_policy(
                PolicyName=name,
                PolicyDocument=json.dumps(document),
                Tags=tag_list(self.tags()),
            )
            return response['Policy']['Arn']

        def find(policy_name: str) -> Optional[str]:
            arn = self.policy_arn(policy_name)
            return probe(
                lambda: self.iam_client.get_policy(PolicyArn=arn)['Policy']['Arn'],
                ['NoSuchEntity'],
            )

        return self.ensure('iam-policy', name, create, find)

    def attach_user_policy(self, user_name: str, policy_arn: str) -> None:
        """Attach a policy to a user. Attaching twice is a no-op in IAM."""
        try:
            self.iam_client.attach_user_policy(UserName=user_name, PolicyArn=policy_arn)
            logger.info(f"Policy {policy_arn} attached to {user_name}")
        except ClientError as e:
            logger.warning(f"Policy may already be attached to {user_name}: {e}")

    def ensure_user_with_policy(
        self,
        user_name: str,
        policy_name: str,
        document: Dict[str, Any],
    ) -> EnsureResult:
        """Ensure a user and its customer policy, then attach the policy.

        Returns:
            EnsureResult for the user
        """
        user = self.ensure_user(user_name)
        policy = self.ensure_policy(policy_name, document)
        self.attach_user_policy(user_name, policy.identifier)
        return user

    # Access keys

    def has_access_keys(self, user_name: str) -> bool:
        response = self.iam_client.list_access_keys(UserName=user_name)
        return bool(response.get('AccessKeyMetadata'))

    def create_access_key_if_missing(self, user_name: str) -> Optional[AccessKeyCredentials]:
        """Create an access key for ``user_name`` if it has none.

        The secret can only be read at creation time, so the caller must
        persist the returned credentials.

        Returns:
            The new credentials, or None if the user already has keys
        """
        if self.has_access_keys(user_name):
            logger.warning(
                f"Access keys already exist for {user_name}. "
                "Delete the existing keys first if new ones are needed."
            )
            return None

        logger.info(f"Creating access key for {user_name}...")
        access_key = self.iam_client.create_access_key(UserName=user_name)['AccessKey']
        return AccessKeyCredentials(
            access_key_id=access_key['AccessKeyId'],
            secret_access_key=access_key['SecretAccessKey'],
        )
