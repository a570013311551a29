"""Security group provisioner for the application security group catalogue."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from eks_bootstrap.config.models import IngressRule, SecurityGroupSpec
from eks_bootstrap.utils.errors import error_code
from eks_bootstrap.utils.logging import get_logger

from .base import BaseProvisioner, EnsureResult

logger = get_logger(__name__)


@dataclass
class SecurityGroupInfo:
    """Summary of an existing security group."""

    group_id: str
    name: str
    vpc_id: Optional[str]
    description: str
    rule_count: int


class SecurityGroupProvisioner(BaseProvisioner):
    """Provisioner for security groups and their ingress rules."""

    def __init__(self, clients, config, **kwargs):
        super().__init__(clients, config, **kwargs)
        self.ec2_client = clients.get_client('ec2')

    def ensure_group(self, spec: SecurityGroupSpec, vpc_id: str) -> EnsureResult:
        """Create a security group and authorize its rules.

        Rules are authorized for skipped groups as well; a rule that is
        already present only produces a warning.

        Args:
            spec: Security group definition
            vpc_id: VPC to create the group in

        Returns:
            EnsureResult with the group ID
        """

        def create() -> str:
            response = self.ec2_client.create_security_group(
                GroupName=spec.name,
                Description=spec.description,
                VpcId=vpc_id,
                TagSpecifications=[{
                    'ResourceType': 'security-group',
                    'Tags': [{'Key': k, 'Value': v} for k, v in self.tags(spec.name).items()],
                }],
            )
            return response['GroupId']

        result = self.ensure('security-group', spec.name, create, self.find_group)

        logger.info(f"Configuring rules for {spec.name}...")
        for rule in spec.rules:
            self.authorize_rule(result.identifier, rule)

        if spec.warning:
            logger.warning(f"{spec.name}: {spec.warning}")
        return result

    def find_group(self, name: str) -> Optional[str]:
        groups = self._describe(Filters=[{'Name': 'group-name', 'Values': [name]}])
        return groups[0]['GroupId'] if groups else None

    def authorize_rule(self, group_id: str, rule: IngressRule) -> bool:
        """Authorize a single TCP ingress rule tagged with its name and purpose.

        Returns:
            True if the rule was added, False if it already existed
        """
        try:
            self.ec2_client.authorize_security_group_ingress(
                GroupId=group_id,
                IpPermissions=[self.build_rule_from_port(rule.port, source_cidr=rule.cidr)],
                TagSpecifications=[{
                    'ResourceType': 'security-group-rule',
                    'Tags': [
                        {'Key': 'Name', 'Value': rule.name},
                        {'Key': 'Purpose', 'Value': rule.purpose},
                    ],
                }],
            )
        except ClientError as e:
            if error_code(e) == 'InvalidPermission.Duplicate':
                logger.warning(f"Rule {rule.name} (port {rule.port}) already exists")
                return False
            raise
        logger.debug(f"Authorized port {rule.port} from {rule.cidr} on {group_id}")
        return True

    def describe_group(self, name: str) -> Optional[SecurityGroupInfo]:
        groups = self._describe(Filters=[{'Name': 'group-name', 'Values': [name]}])
        return self._to_info(groups[0]) if groups else None

    def list_project_groups(self) -> List[SecurityGroupInfo]:
        """Return every security group tagged with the project name."""
        groups = self._describe(Filters=[{'Name': 'tag:Project', 'Values': [self.config.prefix]}])
        return [self._to_info(group) for group in groups]

    def _describe(self, **kwargs) -> List[Dict[str, Any]]:
        return self.ec2_client.describe_security_groups(**kwargs).get('SecurityGroups', [])

    @staticmethod
    def _to_info(group: Dict[str, Any]) -> SecurityGroupInfo:
        return SecurityGroupInfo(
            group_id=group['GroupId'],
            name=group['GroupName'],
            vpc_id=group.get('VpcId'),
            description=group.get('Description', ''),
            rule_count=len(group.get('IpPermissions', [])),
        )

    @staticmethod
    def build_rule_from_port(
        port: int,
        protocol: str = 'tcp',
        source_cidr: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build an ingress permission for a single port.

        Args:
            port: Port number
            protocol: Protocol (tcp, udp, icmp, or -1 for all)
            source_cidr: Source CIDR block (e.g., '0.0.0.0/0')

        Returns:
            IpPermissions entry
        """
        rule = {
            'IpProtocol': protocol,
            'FromPort': port,
            'ToPort': port,
        }
        if source_cidr:
            rule['IpRanges'] = [{'CidrIp': source_cidr}]
        return rule
