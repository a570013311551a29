"""Built-in catalogue of security groups, databases and IAM policies.

These are the defaults used when the configuration file does not override
them. They are returned as plain dictionaries and validated by the models.
"""

from typing import Any, Dict

VPC_CIDR = "10.0.0.0/16"
ANYWHERE = "0.0.0.0/0"


def _rule(port: int, cidr: str, name: str, purpose: str) -> Dict[str, Any]:
    return {"port": port, "cidr": cidr, "name": name, "purpose": purpose}


def default_security_groups() -> Dict[str, Dict[str, Any]]:
    """Application security groups keyed by their command-line name."""
    return {
        "payments": {
            "name": "fcg-payments",
            "description": "Security Group para API de Pagamentos FCG",
            "rules": [
                _rule(443, ANYWHERE, "HTTPS-External", "API-Access"),
                _rule(80, ANYWHERE, "HTTP-Redirect", "Redirect-to-HTTPS"),
                _rule(8080, VPC_CIDR, "App-Internal", "Internal-Communication"),
                _rule(22, VPC_CIDR, "SSH-Internal", "Management"),
            ],
        },
        "userapi": {
            "name": "fcg-user-api",
            "description": "Security Group para API de Usuarios FCG",
            "rules": [
                _rule(443, ANYWHERE, "HTTPS-External", "API-Access"),
                _rule(80, ANYWHERE, "HTTP-Redirect", "Redirect-to-HTTPS"),
                _rule(3000, VPC_CIDR, "App-Internal", "Internal-Communication"),
                _rule(22, VPC_CIDR, "SSH-Internal", "Management"),
            ],
        },
        "dev": {
            "name": "fcg-dev",
            "description": "Security Group para Ambiente de Desenvolvimento FCG",
            "rules": [
                _rule(80, ANYWHERE, "HTTP-Dev", "Development-Access"),
                _rule(443, ANYWHERE, "HTTPS-Dev", "Development-Access"),
                _rule(3000, ANYWHERE, "NodeJS-Dev", "Development"),
                _rule(3001, ANYWHERE, "React-Dev", "Development"),
                _rule(8080, ANYWHERE, "SpringBoot-Dev", "Development"),
                _rule(22, ANYWHERE, "SSH-Dev", "Development-Management"),
            ],
            "warning": "This group is permissive and meant for development only",
        },
        "gamelibrary": {
            "name": "fcg-gamelibrary",
            "description": "Security Group para Biblioteca de Jogos FCG",
            "rules": [
                _rule(443, ANYWHERE, "HTTPS-External", "API-Access"),
                _rule(80, ANYWHERE, "HTTP-Redirect", "Redirect-to-HTTPS"),
                _rule(4000, VPC_CIDR, "App-Internal", "Internal-Communication"),
                _rule(8081, ANYWHERE, "WebSocket-Games", "Real-time-Gaming"),
                _rule(22, VPC_CIDR, "SSH-Internal", "Management"),
            ],
        },
        "db": {
            "name": "fcg-db",
            "description": "Security Group para Banco de Dados FCG",
            "rules": [
                _rule(3306, VPC_CIDR, "MySQL-Internal", "Database-Access"),
                _rule(5432, VPC_CIDR, "PostgreSQL-Internal", "Database-Access"),
                _rule(6379, VPC_CIDR, "Redis-Internal", "Cache-Access"),
                _rule(27017, VPC_CIDR, "MongoDB-Internal", "Database-Access"),
                _rule(22, VPC_CIDR, "SSH-Internal", "Database-Management"),
            ],
        },
    }


def default_databases() -> Dict[str, Dict[str, Any]]:
    """Managed databases keyed by their command-line name."""
    return {
        "payments": {
            "identifier": "fcg-payments-db",
            "db_name": "fcg_payments",
            "engine": "mysql",
            "engine_version": "8.0.35",
            "port": 3306,
            "application": "payments",
            "env_prefix": "FCG_PAYMENTS_DB",
            "description": "Payments API",
        },
        "userapi": {
            "identifier": "fcg-user-api-db",
            "db_name": "fcg_users",
            "engine": "postgres",
            "engine_version": "15.4",
            "port": 5432,
            "application": "user-api",
            "env_prefix": "FCG_USER_API_DB",
            "description": "User API",
        },
        "gamelibrary": {
            "identifier": "fcg-gamelibrary-db",
            "db_name": "fcg_games",
            "engine": "mysql",
            "engine_version": "8.0.35",
            "port": 3306,
            "application": "gamelibrary",
            "env_prefix": "FCG_GAMELIBRARY_DB",
            "description": "Game library",
        },
        "analytics": {
            "identifier": "fcg-analytics-db",
            "db_name": "fcg_analytics",
            "engine": "postgres",
            "engine_version": "15.4",
            "port": 5432,
            "application": "analytics",
            "env_prefix": "FCG_ANALYTICS_DB",
            "description": "Analytics and reporting",
        },
    }


def admin_policy_document() -> Dict[str, Any]:
    """Customer-managed policy for the cluster admin user."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Action": [
                    "eks:*",
                    "ec2:DescribeInstances",
                    "ec2:DescribeSecurityGroups",
                    "ec2:DescribeSubnets",
                    "ec2:DescribeVpcs",
                    "iam:GetRole",
                    "iam:ListRoles",
                ],
                "Resource": "*",
            }
        ],
    }


def cicd_policy_document() -> Dict[str, Any]:
    """Customer-managed policy for the CI/CD pipeline user."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {"Sid": "EKSFullAccess", "Effect": "Allow", "Action": ["eks:*"], "Resource": "*"},
            {"Sid": "ECRFullAccess", "Effect": "Allow", "Action": ["ecr:*"], "Resource": "*"},
            {
                "Sid": "EC2ForEKS",
                "Effect": "Allow",
                "Action": ["ec2:Describe*", "ec2:CreateTags", "ec2:DeleteTags"],
                "Resource": "*",
            },
            {
                "Sid": "IAMForEKS",
                "Effect": "Allow",
                "Action": [
                    "iam:GetRole",
                    "iam:PassRole",
                    "iam:ListAttachedRolePolicies",
                    "iam:GetPolicy",
                    "iam:GetPolicyVersion",
                ],
                "Resource": "*",
            },
            {
                "Sid": "CloudFormationAccess",
                "Effect": "Allow",
                "Action": ["cloudformation:*"],
                "Resource": "*",
            },
            {
                "Sid": "S3ForArtifacts",
                "Effect": "Allow",
                "Action": [
                    "s3:GetObject",
                    "s3:PutObject",
                    "s3:DeleteObject",
                    "s3:ListBucket",
                    "s3:CreateBucket",
                    "s3:GetBucketLocation",
                ],
                "Resource": "*",
            },
            {
                "Sid": "LogsAndMonitoring",
                "Effect": "Allow",
                "Action": ["logs:*", "cloudwatch:*"],
                "Resource": "*",
            },
            {
                "Sid": "LoadBalancerAccess",
                "Effect": "Allow",
                "Action": ["elasticloadbalancing:*"],
                "Resource": "*",
            },
            {
                "Sid": "AutoScalingAccess",
                "Effect": "Allow",
                "Action": ["autoscaling:*", "application-autoscaling:*"],
                "Resource": "*",
            },
            {
                "Sid": "SecretsAccess",
                "Effect": "Allow",
                "Action": [
                    "ssm:GetParameter",
                    "ssm:GetParameters",
                    "ssm:PutParameter",
                    "secretsmanager:GetSecretValue",
                ],
                "Resource": "*",
            },
        ],
    }


CLUSTER_ROLE_POLICIES = [
    "arn:aws:iam::aws:policy/AmazonEKSClusterPolicy",
]

NODE_ROLE_POLICIES = [
    "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy",
    "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy",
    "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly",
]
