"""EKS provisioner for the control plane and the managed node group."""

from typing import Callable, Optional

from botocore.exceptions import ClientError

from eks_bootstrap.state.models import NetworkOutputs
from eks_bootstrap.utils.logging import get_logger

from .base import BaseProvisioner, EnsureResult, probe

logger = get_logger(__name__)

NOT_FOUND = 'NOT_FOUND'

CLUSTER_FAILURES = ['FAILED']
NODE_GROUP_FAILURES = ['CREATE_FAILED', 'FAILED']


class EKSProvisioner(BaseProvisioner):
    """Provisioner for the EKS cluster and its node group.

    Both resources are waited on only when they are created in the same call;
    an existing cluster or node group is skipped as is.
    """

    def __init__(self, clients, config, **kwargs):
        super().__init__(clients, config, **kwargs)
        self.eks_client = clients.get_client('eks')

    # Cluster

    def ensure_cluster(
        self,
        network: Callable[[], NetworkOutputs],
        role_arn: Callable[[], str],
    ) -> EnsureResult:
        """Create the cluster and wait for it to become ACTIVE.

        Args:
            network: Loads the network identifiers; called only when the
                cluster has to be created, so a missing network step does
                not block an existing cluster
            role_arn: Returns the ARN of the cluster service role

        Returns:
            EnsureResult with the cluster ARN
        """
        name = self.config.cluster_name

        def create() -> str:
            outputs = network()
            vpc_config = {'subnetIds': outputs.subnet_ids}
            if outputs.security_group_id:
                vpc_config['securityGroupIds'] = [outputs.security_group_id]

            response = self.eks_client.create_cluster(
                name=name,
                version=self.config.cluster.version,
                roleArn=role_arn(),
                resourcesVpcConfig=vpc_config,
                tags=self.tags(),
            )
            logger.info("Cluster creation requested, this can take 10-15 minutes")
            return response['cluster']['arn']

        result = self.ensure('eks-cluster', name, create, self.find_cluster)
        if result.created:
            self.wait(
                name,
                'eks-cluster',
                self.cluster_status,
                success='ACTIVE',
                failures=CLUSTER_FAILURES,
                timeout=self.config.waits.cluster_timeout,
            )
        return result

    def find_cluster(self, name: str) -> Optional[str]:
        return probe(
            lambda: self.eks_client.describe_cluster(name=name)['cluster']['arn'],
            ['ResourceNotFoundException'],
        )

    def describe_cluster(self) -> Optional[dict]:
        try:
            return self.eks_client.describe_cluster(name=self.config.cluster_name)['cluster']
        except ClientError as e:
            logger.debug(f"describe_cluster failed: {e}")
            return None

    def cluster_status(self) -> str:
        """Current cluster status, ``NOT_FOUND`` when it cannot be described."""
        cluster = self.describe_cluster()
        return cluster['status'] if cluster else NOT_FOUND

    # Node group

    def ensure_node_group(
        self,
        network: Callable[[], NetworkOutputs],
        role_arn: Callable[[], str],
    ) -> EnsureResult:
        """Create the managed node group and wait for it to become ACTIVE.

        Args:
            network: Loads the network identifiers, called only on create
            role_arn: Returns the ARN of the node instance role

        Returns:
            EnsureResult with the node group ARN
        """
        node_group = self.config.cluster.node_group

        def create() -> str:
            outputs = network()
            response = self.eks_client.create_nodegroup(
                clusterName=self.config.cluster_name,
                nodegroupName=node_group.name,
                instanceTypes=[node_group.instance_type],
                nodeRole=role_arn(),
                subnets=outputs.subnet_ids,
                scalingConfig={
                    'minSize': node_group.min_size,
                    'maxSize': node_group.max_size,
                    'desiredSize': node_group.desired_size,
                },
                tags=self.tags(),
            )
            return response['nodegroup']['nodegroupArn']

        result = self.ensure('eks-nodegroup', node_group.name, create, self.find_node_group)
        if result.created:
            self.wait(
                node_group.name,
                'eks-nodegroup',
                self.node_group_status,
                success='ACTIVE',
                failures=NODE_GROUP_FAILURES,
                timeout=self.config.waits.node_group_timeout,
            )
        return result

    def find_node_group(self, name: str) -> Optional[str]:
        return probe(
            lambda: self.eks_client.describe_nodegroup(
                clusterName=self.config.cluster_name,
                nodegroupName=name,
            )['nodegroup']['nodegroupArn'],
            ['ResourceNotFoundException'],
        )

    def describe_node_group(self) -> Optional[dict]:
        try:
            return self.eks_client.describe_nodegroup(
                clusterName=self.config.cluster_name,
                nodegroupName=self.config.cluster.node_group.name,
            )['nodegroup']
        except ClientError as e:
            logger.debug(f"describe_nodegroup failed: {e}")
            return None

    def node_group_status(self) -> str:
        node_group = self.describe_node_group()
        return node_group['status'] if node_group else NOT_FOUND
