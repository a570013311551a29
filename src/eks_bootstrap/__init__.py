"""Idempotent AWS provisioning runbooks for EKS clusters, security groups and databases."""

__version__ = "0.1.0"
