"""Configuration management for the provisioning runbooks."""

from .models import (
    AppConfig,
    ProjectConfig,
    NetworkConfig,
    SubnetConfig,
    ClusterConfig,
    NodeGroupConfig,
    IAMConfig,
    WaitConfig,
    IngressRule,
    SecurityGroupSpec,
    DatabaseSpec,
    DatabaseSettings,
    CacheConfig,
    KubectlConfig,
)
from .parser import Config, ConfigValidationError, load_config

__all__ = [
    "AppConfig",
    "ProjectConfig",
    "NetworkConfig",
    "SubnetConfig",
    "ClusterConfig",
    "NodeGroupConfig",
    "IAMConfig",
    "WaitConfig",
    "IngressRule",
    "SecurityGroupSpec",
    "DatabaseSpec",
    "DatabaseSettings",
    "CacheConfig",
    "KubectlConfig",
    "Config",
    "ConfigValidationError",
    "load_config",
]
