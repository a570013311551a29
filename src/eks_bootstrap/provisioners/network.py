"""VPC provisioner for the cluster network stack."""

from typing import List, Optional, Tuple

from eks_bootstrap.state.models import NetworkOutputs
from eks_bootstrap.utils.errors import ErrorContext, ProvisioningError
from eks_bootstrap.utils.logging import get_logger

from .base import BaseProvisioner, EnsureResult, tag_list

logger = get_logger(__name__)


class NetworkProvisioner(BaseProvisioner):
    """Provisioner for the VPC, public subnets, routing and cluster security group."""

    def __init__(self, clients, config, **kwargs):
        super().__init__(clients, config, **kwargs)
        self.ec2_client = clients.get_client('ec2')

    @property
    def vpc_name(self) -> str:
        return self.config.resource_name('vpc')

    def ensure_network(self) -> Tuple[EnsureResult, Optional[NetworkOutputs]]:
        """Create the network stack unless the project VPC already exists.

        Returns:
            The ensure result for the VPC and the identifiers of the stack
            when it was created in this call, otherwise None
        """
        created: List[NetworkOutputs] = []

        def create() -> str:
            outputs = self._create_network()
            created.append(outputs)
            return outputs.vpc_id

        result = self.ensure('vpc', self.vpc_name, create, self.find_vpc)
        return result, (created[0] if created else None)

    def find_vpc(self, name: str) -> Optional[str]:
        """Return the ID of the VPC tagged with ``Name=name``."""
        response = self.ec2_client.describe_vpcs(
            Filters=[{'Name': 'tag:Name', 'Values': [name]}]
        )
        vpcs = response.get('Vpcs', [])
        return vpcs[0]['VpcId'] if vpcs else None

    def find_default_vpc(self) -> Optional[str]:
        response = self.ec2_client.describe_vpcs(
            Filters=[{'Name': 'isDefault', 'Values': ['true']}]
        )
        vpcs = response.get('Vpcs', [])
        return vpcs[0]['VpcId'] if vpcs else None

    def resolve_vpc(self) -> str:
        """Return the project VPC, falling back to the account default VPC.

        Raises:
            ProvisioningError: If neither exists
        """
        vpc_id = self.find_vpc(self.vpc_name)
        if vpc_id:
            return vpc_id

        vpc_id = self.find_default_vpc()
        if vpc_id:
            logger.warning(f"VPC {self.vpc_name} not found, using default VPC {vpc_id}")
            return vpc_id

        raise ProvisioningError(
            "No VPC found",
            context=ErrorContext(resource_id=self.vpc_name, resource_type='vpc'),
            suggestions=['Run the cluster runbook step 1 to create the project VPC'],
        )

    def subnet_ids(self, vpc_id: str) -> List[str]:
        """Return the IDs of every subnet of ``vpc_id``.

        Raises:
            ProvisioningError: If the VPC has no subnets
        """
        response = self.ec2_client.describe_subnets(
            Filters=[{'Name': 'vpc-id', 'Values': [vpc_id]}]
        )
        subnets = [s['SubnetId'] for s in response.get('Subnets', [])]
        if not subnets:
            raise ProvisioningError(
                f"No subnets found in VPC {vpc_id}",
                context=ErrorContext(resource_id=vpc_id, resource_type='vpc'),
            )
        return subnets

    def discover(self, vpc_id: str) -> NetworkOutputs:
        """Look up the identifiers of an existing network stack by its tags."""
        subnet_ids = []
        for index in range(1, len(self.config.network.subnets) + 1):
            subnet_id = self._find_tagged(
                'describe_subnets', 'Subnets', 'SubnetId',
                self.config.resource_name(f'subnet-{index}'), vpc_id,
            )
            if subnet_id:
                subnet_ids.append(subnet_id)

        igws = self.ec2_client.describe_internet_gateways(
            Filters=[{'Name': 'attachment.vpc-id', 'Values': [vpc_id]}]
        ).get('InternetGateways', [])

        route_table_id = self._find_tagged(
            'describe_route_tables', 'RouteTables', 'RouteTableId',
            self.config.resource_name('rt'), vpc_id,
        )

        groups = self.ec2_client.describe_security_groups(
            Filters=[
                {'Name': 'group-name', 'Values': [self.config.resource_name('sg')]},
                {'Name': 'vpc-id', 'Values': [vpc_id]},
            ]
        ).get('SecurityGroups', [])

        return NetworkOutputs(
            vpc_id=vpc_id,
            igw_id=igws[0]['InternetGatewayId'] if igws else None,
            subnet_ids=subnet_ids,
            route_table_id=route_table_id,
            security_group_id=groups[0]['GroupId'] if groups else None,
        )

    def _find_tagged(self, operation: str, key: str, id_key: str, name: str, vpc_id: str) -> Optional[str]:
        response = getattr(self.ec2_client, operation)(
            Filters=[
                {'Name': 'tag:Name', 'Values': [name]},
                {'Name': 'vpc-id', 'Values': [vpc_id]},
            ]
        )
        items = response.get(key, [])
        return items[0][id_key] if items else None

    def _tag_spec(self, resource_type: str, name: str) -> List[dict]:
        return [{'ResourceType': resource_type, 'Tags': tag_list(self.tags(name))}]

    def _create_network(self) -> NetworkOutputs:
        network = self.config.network
        region = self.clients.get_region()

        vpc_id = self.ec2_client.create_vpc(
            CidrBlock=network.vpc_cidr,
            TagSpecifications=self._tag_spec('vpc', self.vpc_name),
        )['Vpc']['VpcId']
        logger.info(f"VPC created: {vpc_id}")

        igw_id = self.ec2_client.create_internet_gateway(
            TagSpecifications=self._tag_spec('internet-gateway', self.config.resource_name('igw')),
        )['InternetGateway']['InternetGatewayId']
        self.ec2_client.attach_internet_gateway(VpcId=vpc_id, InternetGatewayId=igw_id)
        logger.info(f"Internet Gateway created: {igw_id}")

        subnet_ids = []
        for index, subnet in enumerate(network.subnets, 1):
            subnet_id = self.ec2_client.create_subnet(
                VpcId=vpc_id,
                CidrBlock=subnet.cidr,
                AvailabilityZone=f"{region}{subnet.az_suffix}",
                TagSpecifications=self._tag_spec('subnet', self.config.resource_name(f'subnet-{index}')),
            )['Subnet']['SubnetId']
            subnet_ids.append(subnet_id)
        logger.info(f"Subnets created: {', '.join(subnet_ids)}")

        route_table_id = self.ec2_client.create_route_table(
            VpcId=vpc_id,
            TagSpecifications=self._tag_spec('route-table', self.config.resource_name('rt')),
        )['RouteTable']['RouteTableId']
        self.ec2_client.create_route(
            RouteTableId=route_table_id,
            DestinationCidrBlock='0.0.0.0/0',
            GatewayId=igw_id,
        )
        for subnet_id in subnet_ids:
            self.ec2_client.associate_route_table(SubnetId=subnet_id, RouteTableId=route_table_id)
            self.ec2_client.modify_subnet_attribute(
                SubnetId=subnet_id,
                MapPublicIpOnLaunch={'Value': True},
            )
        logger.info("Routing configured")

        sg_name = self.config.resource_name('sg')
        sg_id = self.ec2_client.create_security_group(
            GroupName=sg_name,
            Description='Security group for EKS cluster',
            VpcId=vpc_id,
            TagSpecifications=self._tag_spec('security-group', sg_name),
        )['GroupId']
        if network.cluster_sg_ports:
            self.ec2_client.authorize_security_group_ingress(
                GroupId=sg_id,
                IpPermissions=[
                    {
                        'IpProtocol': 'tcp',
                        'FromPort': port,
                        'ToPort': port,
                        'IpRanges': [{'CidrIp': '0.0.0.0/0'}],
                    }
                    for port in network.cluster_sg_ports
                ],
            )
        logger.info(f"Security Group created: {sg_id}")

        return NetworkOutputs(
            vpc_id=vpc_id,
            igw_id=igw_id,
            subnet_ids=subnet_ids,
            route_table_id=route_table_id,
            security_group_id=sg_id,
        )
