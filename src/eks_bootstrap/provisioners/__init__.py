"""Provisioners module for AWS resource management."""

from .base import (
    BaseProvisioner,
    ChangeType,
    EnsureResult,
    ProgressCallback,
    ResourceEvent,
    probe,
    tag_list,
)
from .network import NetworkProvisioner
from .iam import IAMProvisioner
from .eks import EKSProvisioner
from .kubectl import KubectlConfigurator, CommandResult, run_command
from .security_group import SecurityGroupProvisioner, SecurityGroupInfo
from .database import DatabaseProvisioner, generate_password

__all__ = [
    'BaseProvisioner',
    'ChangeType',
    'EnsureResult',
    'ProgressCallback',
    'ResourceEvent',
    'probe',
    'tag_list',
    'NetworkProvisioner',
    'IAMProvisioner',
    'EKSProvisioner',
    'KubectlConfigurator',
    'CommandResult',
    'run_command',
    'SecurityGroupProvisioner',
    'SecurityGroupInfo',
    'DatabaseProvisioner',
    'generate_password',
]
