"""RDS and ElastiCache provisioner for the application databases."""

import secrets
import string
from typing import Callable, List, Optional, Tuple

from botocore.exceptions import ClientError

from eks_bootstrap.config.models import DatabaseSpec, IngressRule, SecurityGroupSpec
from eks_bootstrap.state.models import CacheCredentials, DatabaseCredentials, Endpoint
from eks_bootstrap.utils.logging import get_logger

from .base import BaseProvisioner, EnsureResult, probe, tag_list
from .network import NetworkProvisioner
from .security_group import SecurityGroupProvisioner

logger = get_logger(__name__)

PASSWORD_ALPHABET = string.ascii_letters + string.digits

DATABASE_FAILURES = ['failed']
CACHE_FAILURES = ['create-failed']


def generate_password(length: int = 16) -> str:
    """Generate an alphanumeric password from a cryptographic source.

    RDS rejects ``/``, ``@``, ``"`` and spaces in master passwords, so
    only letters and digits are used.
    """
    return ''.join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


class DatabaseProvisioner(BaseProvisioner):
    """Provisioner for RDS instances, the Redis cache and their placement.

    Subnet groups and the database security group are resolved lazily, the
    first time an instance or the cache actually has to be created.
    """

    def __init__(self, clients, config, **kwargs):
        super().__init__(clients, config, **kwargs)
        self.rds_client = clients.get_client('rds')
        self.elasticache_client = clients.get_client('elasticache')
        self.network = NetworkProvisioner(clients, config, waiter=self.waiter, progress=self.progress)
        self.security_groups = SecurityGroupProvisioner(
            clients, config, waiter=self.waiter, progress=self.progress
        )
        self._security_group_id: Optional[str] = None

    @property
    def settings(self):
        return self.config.databases

    # Placement

    def _vpc_subnets(self) -> Tuple[str, List[str]]:
        vpc_id = self.network.resolve_vpc()
        return vpc_id, self.network.subnet_ids(vpc_id)

    def ensure_db_subnet_group(self) -> EnsureResult:
        name = self.config.resource_name('db-subnet-group')

        def create() -> str:
            _, subnets = self._vpc_subnets()
            self.rds_client.create_db_subnet_group(
                DBSubnetGroupName=name,
                DBSubnetGroupDescription='Subnet group for application databases',
                SubnetIds=subnets,
                Tags=tag_list(self.tags(name)),
            )
            return name

        def find(group_name: str) -> Optional[str]:
            return probe(
                lambda: self.rds_client.describe_db_subnet_groups(
                    DBSubnetGroupName=group_name
                )['DBSubnetGroups'][0]['DBSubnetGroupName'],
                ['DBSubnetGroupNotFoundFault'],
            )

        return self.ensure('db-subnet-group', name, create, find)

    def ensure_cache_subnet_group(self) -> EnsureResult:
        name = self.config.resource_name('cache-subnet-group')

        def create() -> str:
            _, subnets = self._vpc_subnets()
            self.elasticache_client.create_cache_subnet_group(
                CacheSubnetGroupName=name,
                CacheSubnetGroupDescription='Subnet group for the application cache',
                SubnetIds=subnets,
                Tags=tag_list(self.tags(name)),
            )
            return name

        def find(group_name: str) -> Optional[str]:
            return probe(
                lambda: self.elasticache_client.describe_cache_subnet_groups(
                    CacheSubnetGroupName=group_name
                )['CacheSubnetGroups'][0]['CacheSubnetGroupName'],
                ['CacheSubnetGroupNotFoundFault'],
            )

        return self.ensure('cache-subnet-group', name, create, find)

    def database_security_group(self) -> str:
        """ID of the database security group.

        Uses the catalogue database group when it exists, otherwise ensures a
        basic group open on the database ports to the internal CIDR.
        """
        if self._security_group_id:
            return self._security_group_id

        group_id = self.security_groups.find_group(self.settings.security_group_name)
        if group_id is None:
            logger.warning(
                f"Security group {self.settings.security_group_name} not found. "
                f"Using {self.settings.fallback_security_group_name}."
            )
            spec = SecurityGroupSpec(
                name=self.settings.fallback_security_group_name,
                description='Basic security group for application databases',
                rules=[
                    IngressRule(
                        port=port,
                        cidr=self.settings.internal_cidr,
                        name=f"DB-{port}",
                        purpose='Database-Access',
                    )
                    for port in self.settings.fallback_ports
                ],
            )
            group_id = self.security_groups.ensure_group(spec, self.network.resolve_vpc()).identifier

        self._security_group_id = group_id
        return group_id

    # RDS

    def ensure_database(
        self,
        spec: DatabaseSpec,
        password: Callable[[], str],
    ) -> Tuple[EnsureResult, Optional[DatabaseCredentials]]:
        """Create an RDS instance unless it already exists.

        Args:
            spec: Database definition
            password: Returns the master password; called only on create

        Returns:
            The ensure result and, when the instance was created in this
            call, the credentials to persist
        """
        created: List[DatabaseCredentials] = []

        def create() -> str:
            subnet_group = self.ensure_db_subnet_group().identifier
            security_group = self.database_security_group()
            master_password = password()

            logger.info(f"Creating {spec.engine} {spec.engine_version} database {spec.identifier}...")
            response = self.rds_client.create_db_instance(
                DBInstanceIdentifier=spec.identifier,
                DBInstanceClass=self.settings.instance_class,
                Engine=spec.engine,
                EngineVersion=spec.engine_version,
                MasterUsername=self.settings.username,
                MasterUserPassword=master_password,
                AllocatedStorage=self.settings.allocated_storage,
                StorageType=self.settings.storage_type,
                DBName=spec.db_name,
                Port=spec.port,
                VpcSecurityGroupIds=[security_group],
                DBSubnetGroupName=subnet_group,
                BackupRetentionPeriod=self.settings.backup_retention_days,
                StorageEncrypted=True,
                MultiAZ=False,
                PubliclyAccessible=False,
                AutoMinorVersionUpgrade=True,
                Tags=tag_list(self.tags(spec.identifier, Application=spec.application)),
            )
            created.append(DatabaseCredentials(
                prefix=spec.env_prefix,
                identifier=spec.identifier,
                db_name=spec.db_name,
                username=self.settings.username,
                password=master_password,
                port=spec.port,
            ))
            return response['DBInstance']['DBInstanceArn']

        result = self.ensure('rds-instance', spec.identifier, create, self.find_database)
        return result, (created[0] if created else None)

    def describe_database(self, identifier: str) -> Optional[dict]:
        return probe(
            lambda: self.rds_client.describe_db_instances(
                DBInstanceIdentifier=identifier
            )['DBInstances'][0],
            ['DBInstanceNotFound', 'DBInstanceNotFoundFault'],
        )

    def find_database(self, identifier: str) -> Optional[str]:
        instance = self.describe_database(identifier)
        return instance['DBInstanceArn'] if instance else None

    def database_status(self, identifier: str) -> str:
        try:
            instance = self.describe_database(identifier)
        except ClientError as e:
            logger.debug(f"describe_db_instances failed: {e}")
            return 'not-found'
        return instance['DBInstanceStatus'] if instance else 'not-found'

    def wait_for_database(self, identifier: str) -> None:
        self.wait(
            identifier,
            'rds-instance',
            lambda: self.database_status(identifier),
            success='available',
            failures=DATABASE_FAILURES,
            timeout=self.config.waits.database_timeout,
        )

    def database_endpoint(self, spec: DatabaseSpec) -> Optional[Endpoint]:
        instance = self.describe_database(spec.identifier)
        if not instance or not instance.get('Endpoint'):
            return None
        return Endpoint(
            prefix=spec.env_prefix,
            address=instance['Endpoint']['Address'],
            port=instance['Endpoint'].get('Port', spec.port),
        )

    # ElastiCache

    def ensure_cache(self) -> Tuple[EnsureResult, Optional[CacheCredentials]]:
        """Create the Redis cache cluster unless it already exists.

        Returns:
            The ensure result and, when created in this call, the cache
            connection details to persist
        """
        cache = self.config.cache
        created: List[CacheCredentials] = []

        def create() -> str:
            subnet_group = self.ensure_cache_subnet_group().identifier
            security_group = self.database_security_group()

            logger.info(f"Creating Redis {cache.engine_version} cluster {cache.cluster_id}...")
            response = self.elasticache_client.create_cache_cluster(
                CacheClusterId=cache.cluster_id,
                CacheNodeType=cache.node_type,
                Engine='redis',
                EngineVersion=cache.engine_version,
                NumCacheNodes=cache.num_nodes,
                Port=cache.port,
                CacheSubnetGroupName=subnet_group,
                SecurityGroupIds=[security_group],
                Tags=tag_list(self.tags(cache.cluster_id, Application=cache.application)),
            )
            created.append(CacheCredentials(
                prefix=cache.env_prefix,
                cluster_id=cache.cluster_id,
                port=cache.port,
            ))
            return response['CacheCluster'].get('ARN', cache.cluster_id)

        result = self.ensure('cache-cluster', cache.cluster_id, create, self.find_cache)
        return result, (created[0] if created else None)

    def describe_cache(self, cluster_id: str) -> Optional[dict]:
        return probe(
            lambda: self.elasticache_client.describe_cache_clusters(
                CacheClusterId=cluster_id,
                ShowCacheNodeInfo=True,
            )['CacheClusters'][0],
            ['CacheClusterNotFound', 'CacheClusterNotFoundFault'],
        )

    def find_cache(self, cluster_id: str) -> Optional[str]:
        cluster = self.describe_cache(cluster_id)
        return cluster.get('ARN', cluster_id) if cluster else None

    def cache_status(self) -> str:
        try:
            cluster = self.describe_cache(self.config.cache.cluster_id)
        except ClientError as e:
            logger.debug(f"describe_cache_clusters failed: {e}")
            return 'not-found'
        return cluster['CacheClusterStatus'] if cluster else 'not-found'

    def wait_for_cache(self) -> None:
        self.wait(
            self.config.cache.cluster_id,
            'cache-cluster',
            self.cache_status,
            success='available',
            failures=CACHE_FAILURES,
            timeout=self.config.waits.cache_timeout,
        )

    def cache_endpoint(self) -> Optional[Endpoint]:
        cache = self.config.cache
        cluster = self.describe_cache(cache.cluster_id)
        nodes = cluster.get('CacheNodes', []) if cluster else []
        if not nodes or not nodes[0].get('Endpoint'):
            return None
        return Endpoint(
            prefix=cache.env_prefix,
            address=nodes[0]['Endpoint']['Address'],
            port=nodes[0]['Endpoint'].get('Port', cache.port),
        )
