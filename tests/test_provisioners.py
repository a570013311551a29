"""Tests for the idempotent resource provisioners."""

import pytest
from botocore.exceptions import ClientError

from eks_bootstrap.config.catalog import CLUSTER_ROLE_POLICIES
from eks_bootstrap.config.models import IngressRule, SecurityGroupSpec
from eks_bootstrap.provisioners.base import BaseProvisioner, ChangeType, ResourceEvent
from eks_bootstrap.provisioners.database import (
    PASSWORD_ALPHABET,
    DatabaseProvisioner,
    generate_password,
)
from eks_bootstrap.provisioners.eks import EKSProvisioner
from eks_bootstrap.provisioners.iam import IAMProvisioner
from eks_bootstrap.provisioners.kubectl import KubectlConfigurator, run_command
from eks_bootstrap.provisioners.network import NetworkProvisioner
from eks_bootstrap.provisioners.security_group import SecurityGroupProvisioner
from eks_bootstrap.state.models import NetworkOutputs
from eks_bootstrap.utils.errors import (
    PrerequisiteError,
    ProvisioningError,
    WaitFailedError,
    WaitTimeoutError,
)

from tests.fakes import client_error


class TestEnsure:

    def test_creates_then_skips(self, clients, config):
        events = []
        provisioner = BaseProvisioner(clients, config, progress=lambda *event: events.append(event))
        existing = {}

        def create():
            existing["demo"] = "id-1"
            return "id-1"

        first = provisioner.ensure("thing", "demo", create, existing.get)
        second = provisioner.ensure("thing", "demo", create, existing.get)

        assert first.change_type == ChangeType.CREATE and first.created
        assert second.change_type == ChangeType.SKIP and second.identifier == "id-1"
        assert [e[1] for e in events] == [ResourceEvent.CREATING, ResourceEvent.CREATED,
                                          ResourceEvent.SKIPPED]

    def test_existence_check_error_propagates(self, clients, config):
        provisioner = BaseProvisioner(clients, config)
        created = []

        def exists(name):
            raise client_error("AccessDenied", "Describe")

        with pytest.raises(ClientError):
            provisioner.ensure("thing", "demo", lambda: created.append(1) or "x", exists)
        assert created == []


class TestNetworkProvisioner:

    def test_creates_stack_once(self, clients, config, aws):
        provisioner = NetworkProvisioner(clients, config)

        first, outputs = provisioner.ensure_network()
        second, again = provisioner.ensure_network()

        assert first.created and not second.created
        assert again is None
        assert second.identifier == outputs.vpc_id
        assert aws.creates["create_vpc"] == 1
        assert aws.creates["create_subnet"] == 2
        assert [s["AvailabilityZone"] for s in aws.ec2.subnets] == ["us-east-1a", "us-east-1b"]
        assert all(s["MapPublicIpOnLaunch"] for s in aws.ec2.subnets)

    def test_route_and_cluster_security_group(self, clients, config, aws):
        _, outputs = NetworkProvisioner(clients, config).ensure_network()

        table = aws.ec2.route_tables[0]
        assert table["Routes"] == [{"DestinationCidrBlock": "0.0.0.0/0", "GatewayId": outputs.igw_id}]
        assert [a["SubnetId"] for a in table["Associations"]] == outputs.subnet_ids

        group = aws.ec2.security_groups[0]
        assert group["GroupName"] == "fcg-eks-user-sg"
        assert [p["FromPort"] for p in group["IpPermissions"]] == [443, 80]

    def test_discover_matches_created_stack(self, clients, config):
        provisioner = NetworkProvisioner(clients, config)
        _, outputs = provisioner.ensure_network()

        assert provisioner.discover(outputs.vpc_id) == outputs

    def test_resolve_vpc_falls_back_to_default(self, clients, config, default_vpc):
        assert NetworkProvisioner(clients, config).resolve_vpc() == default_vpc

    def test_resolve_vpc_prefers_project_vpc(self, clients, config, default_vpc):
        provisioner = NetworkProvisioner(clients, config)
        _, outputs = provisioner.ensure_network()

        assert provisioner.resolve_vpc() == outputs.vpc_id

    def test_resolve_vpc_without_any_vpc(self, clients, config):
        with pytest.raises(ProvisioningError, match="No VPC found"):
            NetworkProvisioner(clients, config).resolve_vpc()

    def test_subnet_ids_requires_subnets(self, clients, config, aws):
        vpc_id = aws.ec2.add_default_vpc(subnet_count=0)

        with pytest.raises(ProvisioningError, match="No subnets"):
            NetworkProvisioner(clients, config).subnet_ids(vpc_id)


class TestIAMProvisioner:

    def test_role_created_once_with_policies(self, clients, config, aws):
        iam = IAMProvisioner(clients, config)

        first = iam.ensure_role("demo-cluster-role", "eks.amazonaws.com", CLUSTER_ROLE_POLICIES)
        second = iam.ensure_role("demo-cluster-role", "eks.amazonaws.com", CLUSTER_ROLE_POLICIES)

        assert first.created and not second.created
        assert first.identifier == "arn:aws:iam::123456789012:role/demo-cluster-role"
        assert aws.iam.role_policies["demo-cluster-role"] == CLUSTER_ROLE_POLICIES
        assert aws.creates["create_role"] == 1
        assert '"eks.amazonaws.com"' in aws.iam.roles["demo-cluster-role"]["AssumeRolePolicyDocument"]

    def test_role_arn_is_derived_from_account(self, clients, config):
        assert IAMProvisioner(clients, config).role_arn("x") == "arn:aws:iam::123456789012:role/x"

    def test_user_with_policy(self, clients, config, aws):
        iam = IAMProvisioner(clients, config)

        user = iam.ensure_user_with_policy("demo-admin", "demo-AdminPolicy", config.iam.admin_policy)
        iam.ensure_user_with_policy("demo-admin", "demo-AdminPolicy", config.iam.admin_policy)

        assert user.created
        assert aws.iam.user_policies["demo-admin"] == [
            "arn:aws:iam::123456789012:policy/demo-AdminPolicy"
        ]
        assert aws.creates["create_policy"] == 1
        assert aws.creates["create_user"] == 1

    def test_attach_failure_is_only_a_warning(self, clients, config, caplog):
        iam = IAMProvisioner(clients, config)

        iam.attach_user_policy("nobody", "arn:aws:iam::123456789012:policy/none")

        assert "may already be attached" in caplog.text

    def test_access_key_created_only_once(self, clients, config, aws):
        iam = IAMProvisioner(clients, config)
        iam.ensure_user("demo-cicd")

        credentials = iam.create_access_key_if_missing("demo-cicd")

        assert credentials.secret_access_key == "secret-demo-cicd-1"
        assert iam.create_access_key_if_missing("demo-cicd") is None
        assert aws.creates["create_access_key"] == 1

    def test_unexpected_error_propagates(self, clients, config, aws, monkeypatch):
        def denied(RoleName):
            raise client_error("AccessDenied", "GetRole")
        monkeypatch.setattr(aws.iam, "get_role", denied)

        with pytest.raises(ClientError):
            IAMProvisioner(clients, config).find_role("demo")


@pytest.fixture
def network_outputs():
    return NetworkOutputs(vpc_id="vpc-1", subnet_ids=["subnet-1", "subnet-2"], security_group_id="sg-1")


class TestEKSProvisioner:

    def test_cluster_created_and_waited(self, clients, config, aws, waiter, clock, network_outputs):
        eks = EKSProvisioner(clients, config, waiter=waiter)

        result = eks.ensure_cluster(lambda: network_outputs, lambda: "arn:role")

        assert result.created
        cluster = aws.eks.clusters["fcg-eks-user-cluster"]
        assert cluster["status"] == "ACTIVE"
        assert cluster["roleArn"] == "arn:role"
        assert cluster["resourcesVpcConfig"] == {"subnetIds": ["subnet-1", "subnet-2"],
                                                 "securityGroupIds": ["sg-1"]}
        assert clock.sleeps == [config.waits.poll_interval]

    def test_existing_cluster_does_not_need_network(self, clients, config, aws, waiter):
        eks = EKSProvisioner(clients, config, waiter=waiter)
        aws.eks.create_cluster(name=config.cluster_name, version="1.30", roleArn="arn:role",
                               resourcesVpcConfig={})

        def missing_network():
            raise PrerequisiteError("no network", required_step="step 1 (network)")

        result = eks.ensure_cluster(missing_network, lambda: "arn:role")

        assert not result.created

    def test_missing_network_blocks_creation(self, clients, config, aws, waiter):
        eks = EKSProvisioner(clients, config, waiter=waiter)

        def missing_network():
            raise PrerequisiteError("no network", required_step="step 1 (network)")

        with pytest.raises(PrerequisiteError):
            eks.ensure_cluster(missing_network, lambda: "arn:role")
        assert aws.creates["create_cluster"] == 0

    def test_failed_cluster_raises(self, clients, config, aws, waiter, network_outputs):
        aws.eks.terminal_status = "FAILED"

        with pytest.raises(WaitFailedError):
            EKSProvisioner(clients, config, waiter=waiter).ensure_cluster(
                lambda: network_outputs, lambda: "arn:role")

    def test_cluster_wait_times_out(self, clients, config, aws, waiter, network_outputs):
        aws.ready_after = 10_000
        config.waits.cluster_timeout = 90

        with pytest.raises(WaitTimeoutError) as exc_info:
            EKSProvisioner(clients, config, waiter=waiter).ensure_cluster(
                lambda: network_outputs, lambda: "arn:role")
        assert exc_info.value.last_status == "CREATING"

    def test_node_group_created_once(self, clients, config, aws, waiter, network_outputs):
        eks = EKSProvisioner(clients, config, waiter=waiter)
        eks.ensure_cluster(lambda: network_outputs, lambda: "arn:cluster-role")

        first = eks.ensure_node_group(lambda: network_outputs, lambda: "arn:node-role")
        second = eks.ensure_node_group(lambda: network_outputs, lambda: "arn:node-role")

        assert first.created and not second.created
        assert eks.node_group_status() == "ACTIVE"
        nodegroup = aws.eks.nodegroups["fcg-eks-user-cluster/fcg-worker-nodes-micro"]
        assert nodegroup["scalingConfig"] == {"minSize": 1, "maxSize": 2, "desiredSize": 2}
        assert nodegroup["instanceTypes"] == ["t3.micro"]

    def test_status_of_missing_cluster(self, clients, config):
        assert EKSProvisioner(clients, config).cluster_status() == "NOT_FOUND"


class TestSecurityGroupProvisioner:

    def spec(self):
        return SecurityGroupSpec(
            name="demo-web",
            description="Web tier",
            rules=[IngressRule(port=443, cidr="0.0.0.0/0", name="HTTPS", purpose="Web"),
                   IngressRule(port=22, name="SSH", purpose="Management")],
        )

    def test_group_and_tagged_rules(self, clients, config, aws, default_vpc):
        result = SecurityGroupProvisioner(clients, config).ensure_group(self.spec(), default_vpc)

        group = aws.ec2.security_groups[0]
        assert result.identifier == group["GroupId"]
        assert group["VpcId"] == default_vpc
        assert [(p["FromPort"], p["IpRanges"][0]["CidrIp"]) for p in group["IpPermissions"]] == [
            (443, "0.0.0.0/0"), (22, "10.0.0.0/16")
        ]
        assert group["RuleTags"][0] == [{"Key": "Name", "Value": "HTTPS"}, {"Key": "Purpose", "Value": "Web"}]

    def test_rerun_treats_duplicate_rules_as_warnings(self, clients, config, aws, default_vpc, caplog):
        provisioner = SecurityGroupProvisioner(clients, config)
        provisioner.ensure_group(self.spec(), default_vpc)

        result = provisioner.ensure_group(self.spec(), default_vpc)

        assert not result.created
        assert aws.creates["create_security_group"] == 1
        assert len(aws.ec2.security_groups[0]["IpPermissions"]) == 2
        assert "Rule HTTPS (port 443) already exists" in caplog.text

    def test_other_rule_errors_propagate(self, clients, config):
        with pytest.raises(ClientError):
            SecurityGroupProvisioner(clients, config).authorize_rule(
                "sg-missing", IngressRule(port=80, name="HTTP", purpose="Web"))

    def test_build_rule_from_port(self):
        assert SecurityGroupProvisioner.build_rule_from_port(5432, source_cidr="10.0.0.0/16") == {
            "IpProtocol": "tcp", "FromPort": 5432, "ToPort": 5432,
            "IpRanges": [{"CidrIp": "10.0.0.0/16"}],
        }


class TestKubectlConfigurator:

    def test_configure_runs_both_commands(self, config, commands):
        KubectlConfigurator(config, runner=commands).configure()

        assert commands.commands == [
            ["aws", "eks", "update-kubeconfig", "--region", "us-east-1", "--name", "fcg-eks-user-cluster"],
            ["kubectl", "create", "clusterrolebinding", "fcg-eks-user-admin-binding",
             "--clusterrole=cluster-admin", "--user=fcg-eks-user-admin"],
        ]

    def test_existing_binding_is_a_warning(self, config, commands, caplog):
        commands.failing.add("kubectl")

        assert KubectlConfigurator(config, runner=commands).create_admin_binding() is False
        assert "may already exist" in caplog.text

    def test_kubeconfig_failure_raises(self, config, commands):
        commands.failing.add("aws")

        with pytest.raises(ProvisioningError, match="update-kubeconfig failed"):
            KubectlConfigurator(config, runner=commands).configure()

    def test_disabled_steps_run_nothing(self, config, commands):
        config.kubectl.update_kubeconfig = False
        config.kubectl.create_admin_binding = False

        KubectlConfigurator(config, runner=commands).configure()

        assert commands.commands == []

    def test_missing_executable(self):
        with pytest.raises(ProvisioningError, match="Command not found"):
            run_command(["eks-bootstrap-no-such-binary", "--version"])


class TestDatabaseProvisioner:

    def test_generate_password(self):
        password = generate_password(24)

        assert len(password) == 24
        assert set(password) <= set(PASSWORD_ALPHABET)
        assert generate_password() != generate_password()

    def test_database_created_once(self, clients, config, aws, default_vpc):
        provisioner = DatabaseProvisioner(clients, config)
        spec = config.databases.catalog["payments"]
        passwords = []

        def password():
            passwords.append("Secret123")
            return "Secret123"

        first, credentials = provisioner.ensure_database(spec, password)
        second, again = provisioner.ensure_database(spec, password)

        assert first.created and not second.created
        assert again is None
        assert passwords == ["Secret123"]
        assert credentials.password == "Secret123"
        assert credentials.to_env()["FCG_PAYMENTS_DB_PORT"] == "3306"

        request = [kw for svc, op, kw in aws.calls if op == "create_db_instance"][0]
        assert request["StorageEncrypted"] is True
        assert request["PubliclyAccessible"] is False
        assert request["MultiAZ"] is False
        assert request["DBSubnetGroupName"] == "fcg-eks-user-db-subnet-group"
        assert request["BackupRetentionPeriod"] == 7

    def test_fallback_security_group(self, clients, config, aws, default_vpc):
        provisioner = DatabaseProvisioner(clients, config)

        group_id = provisioner.database_security_group()

        group = aws.ec2.security_groups[0]
        assert group["GroupName"] == "fcg-db-basic"
        assert group["GroupId"] == group_id
        assert [p["FromPort"] for p in group["IpPermissions"]] == [3306, 5432, 6379]
        assert provisioner.database_security_group() == group_id
        assert aws.creates["create_security_group"] == 1

    def test_catalogue_security_group_preferred(self, clients, config, aws, default_vpc):
        group_id = aws.ec2.create_security_group(GroupName="fcg-db", Description="db", VpcId=default_vpc)["GroupId"]

        assert DatabaseProvisioner(clients, config).database_security_group() == group_id

    def test_cache_created_with_endpoint_after_wait(self, clients, config, aws, default_vpc, waiter):
        provisioner = DatabaseProvisioner(clients, config, waiter=waiter)

        result, credentials = provisioner.ensure_cache()
        assert provisioner.cache_endpoint() is None
        provisioner.wait_for_cache()

        assert result.created
        assert credentials.to_env() == {"FCG_REDIS_CLUSTER_ID": "fcg-cache-redis", "FCG_REDIS_PORT": "6379"}
        endpoint = provisioner.cache_endpoint()
        assert endpoint.address == "fcg-cache-redis.abc123.cache.amazonaws.com"
        assert endpoint.port == 6379

    def test_status_of_missing_database(self, clients, config):
        assert DatabaseProvisioner(clients, config).database_status("missing") == "not-found"
