"""Pydantic models for configuration schema."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from . import catalog as defaults


VALID_REGIONS = [
    "us-east-1",
    "us-east-2",
    "us-west-1",
    "us-west-2",
    "eu-west-1",
    "eu-west-2",
    "eu-west-3",
    "eu-central-1",
    "eu-north-1",
    "ap-northeast-1",
    "ap-northeast-2",
    "ap-northeast-3",
    "ap-southeast-1",
    "ap-southeast-2",
    "ap-south-1",
    "sa-east-1",
    "ca-central-1",
]


class ProjectConfig(BaseModel):
    """Project-level configuration."""

    name: str = Field("fcg-eks-user", min_length=1, max_length=48, pattern="^[a-z0-9-]+$")
    region: str = Field("us-east-1", min_length=1)
    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("region")
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Validate AWS region format."""
        if v not in VALID_REGIONS:
            raise ValueError(
                f"Invalid AWS region: {v}. Must be one of: {', '.join(VALID_REGIONS)}"
            )
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Validate tag keys and values."""
        for key, value in v.items():
            if len(key) > 128:
                raise ValueError(f"Tag key exceeds 128 characters: {key}")
            if len(value) > 256:
                raise ValueError(f"Tag value exceeds 256 characters for key '{key}'")
        return v


class SubnetConfig(BaseModel):
    """A public subnet of the cluster VPC."""

    cidr: str
    az_suffix: str = Field(..., pattern="^[a-f]$")


class NetworkConfig(BaseModel):
    """Cluster network configuration."""

    vpc_cidr: str = "10.0.0.0/16"
    subnets: List[SubnetConfig] = Field(
        default_factory=lambda: [
            SubnetConfig(cidr="10.0.1.0/24", az_suffix="a"),
            SubnetConfig(cidr="10.0.2.0/24", az_suffix="b"),
        ]
    )
    cluster_sg_ports: List[int] = Field(default_factory=lambda: [443, 80])

    @field_validator("subnets")
    @classmethod
    def validate_subnets(cls, v: List[SubnetConfig]) -> List[SubnetConfig]:
        # EKS requires subnets in at least two availability zones
        if len({s.az_suffix for s in v}) < 2:
            raise ValueError("At least two subnets in different availability zones are required")
        return v


class NodeGroupConfig(BaseModel):
    """Managed node group configuration."""

    name: str = "fcg-worker-nodes-micro"
    instance_type: str = "t3.micro"
    min_size: int = Field(1, ge=0)
    max_size: int = Field(2, ge=1)
    desired_size: int = Field(2, ge=0)

    @model_validator(mode="after")
    def validate_scaling(self):
        """Validate min <= desired <= max."""
        if not self.min_size <= self.desired_size <= self.max_size:
            raise ValueError("Scaling must satisfy min_size <= desired_size <= max_size")
        return self


class ClusterConfig(BaseModel):
    """EKS cluster configuration."""

    name: Optional[str] = Field(None, description="Defaults to <project>-cluster")
    version: str = Field("1.30", pattern="^1\\.[0-9]+$")
    node_group: NodeGroupConfig = Field(default_factory=NodeGroupConfig)


class IAMConfig(BaseModel):
    """Policies for the users created by the cluster runbook."""

    admin_policy: Dict[str, Any] = Field(default_factory=lambda: defaults.admin_policy_document())
    cicd_policy: Dict[str, Any] = Field(default_factory=lambda: defaults.cicd_policy_document())


class WaitConfig(BaseModel):
    """Polling intervals and timeouts in seconds."""

    poll_interval: float = Field(30, gt=0)
    cluster_timeout: float = Field(1200, gt=0)
    node_group_timeout: float = Field(900, gt=0)
    database_timeout: float = Field(1200, gt=0)
    cache_timeout: float = Field(900, gt=0)
    propagation_delay: float = Field(30, ge=0)


class IngressRule(BaseModel):
    """A single TCP ingress rule."""

    port: int = Field(..., ge=0, le=65535)
    cidr: str = "10.0.0.0/16"
    name: str
    purpose: str


class SecurityGroupSpec(BaseModel):
    """An application security group of the catalogue."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str
    rules: List[IngressRule] = Field(default_factory=list)
    warning: Optional[str] = None


class DatabaseSpec(BaseModel):
    """A managed relational database of the catalogue."""

    identifier: str = Field(..., pattern="^[a-z][a-z0-9-]{0,62}$")
    db_name: str = Field(..., pattern="^[A-Za-z][A-Za-z0-9_]*$")
    engine: str = Field(..., pattern="^(mysql|postgres|mariadb)$")
    engine_version: str
    port: int
    application: str
    env_prefix: str = Field(..., pattern="^[A-Z][A-Z0-9_]*$")
    description: str = ""


class DatabaseSettings(BaseModel):
    """Settings shared by every database of the catalogue."""

    instance_class: str = "db.t3.micro"
    username: str = "fcgadmin"
    password_length: int = Field(16, ge=8, le=41)
    allocated_storage: int = Field(20, ge=20)
    storage_type: str = "gp2"
    backup_retention_days: int = Field(7, ge=0, le=35)
    security_group_name: str = "fcg-db"
    fallback_security_group_name: str = "fcg-db-basic"
    fallback_ports: List[int] = Field(default_factory=lambda: [3306, 5432, 6379])
    internal_cidr: str = "10.0.0.0/16"
    catalog: Dict[str, DatabaseSpec] = Field(
        default_factory=lambda: defaults.default_databases(), validate_default=True
    )


class CacheConfig(BaseModel):
    """Redis cache cluster configuration."""

    enabled: bool = True
    cluster_id: str = "fcg-cache-redis"
    node_type: str = "cache.t3.micro"
    engine_version: str = "7.0"
    num_nodes: int = Field(1, ge=1)
    port: int = 6379
    application: str = "cache"
    env_prefix: str = "FCG_REDIS"


class KubectlConfig(BaseModel):
    """Post-creation kubectl configuration."""

    update_kubeconfig: bool = True
    create_admin_binding: bool = True


class AppConfig(BaseModel):
    """Complete configuration passed to every runbook."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    iam: IAMConfig = Field(default_factory=IAMConfig)
    waits: WaitConfig = Field(default_factory=WaitConfig)
    security_groups: Dict[str, SecurityGroupSpec] = Field(
        default_factory=lambda: defaults.default_security_groups(), validate_default=True
    )
    databases: DatabaseSettings = Field(default_factory=DatabaseSettings)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    kubectl: KubectlConfig = Field(default_factory=KubectlConfig)

    @property
    def prefix(self) -> str:
        return self.project.name

    @property
    def cluster_name(self) -> str:
        return self.cluster.name or f"{self.prefix}-cluster"

    def resource_name(self, suffix: str) -> str:
        """Deterministic resource name derived from the project prefix."""
        return f"{self.prefix}-{suffix}"

    def base_tags(self, name: Optional[str] = None) -> Dict[str, str]:
        """Tags applied to every created resource."""
        tags = dict(self.project.tags)
        tags["Project"] = self.prefix
        if name:
            tags["Name"] = name
        return tags
