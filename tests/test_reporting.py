"""Tests for the summary reports and cost estimates."""

import pytest

from eks_bootstrap.reporting.cost_estimator import CostEstimator
from eks_bootstrap.reporting.reports import ReportRenderer
from eks_bootstrap.state.manager import DB_CREDENTIALS_FILE


class TestCostEstimator:

    @pytest.mark.parametrize("runbook, total", [("eks", 89.0), ("db", 85.0), ("sg", 0.0)])
    def test_totals(self, config, runbook, total):
        assert CostEstimator(config).estimate(runbook).total == total

    def test_cache_line_follows_config(self, config):
        config.cache.enabled = False

        estimate = CostEstimator(config).estimate("db")

        assert estimate.total == 70.0
        assert not any(label.startswith("ElastiCache") for label, _ in estimate.items)

    def test_labels_describe_sizing(self, config):
        labels = [label for label, _ in CostEstimator(config).estimate("db").items]

        assert labels[0] == "RDS t3.micro (4 instances)"
        assert labels[1] == "ElastiCache t3.micro"


class TestReportRenderer:

    def test_eks_report_hides_secret_key(self, eks_runbook, state, tmp_path):
        eks_runbook.run_all()
        credentials = state.github_credentials()

        text = (tmp_path / "eks-deployment-report.txt").read_text()

        assert credentials.access_key_id in text
        assert credentials.secret_access_key not in text
        assert "see .eks-github-credentials" in text
        assert "Account ID: 123456789012" in text
        assert f"VPC ID: {state.network().vpc_id}" in text
        assert "TOTAL ESTIMATE: ~$89.00/month" in text

    def test_eks_report_before_deployment(self, config, state):
        text = ReportRenderer(config, state).render("eks")

        assert "VPC ID: N/A" in text
        assert "Account ID: N/A" in text

    def test_database_report_hides_passwords(self, db_runbook, state, tmp_path, default_vpc):
        db_runbook.run_all()
        passwords = [v for k, v in state.read(DB_CREDENTIALS_FILE).items() if k.endswith("_PASSWORD")]

        text = (tmp_path / "database-report.txt").read_text()

        assert len(passwords) == 4
        assert not any(password in text for password in passwords)
        assert f"Passwords: see {DB_CREDENTIALS_FILE}" in text
        assert "fcg-payments-db.abc123.us-east-1.rds.amazonaws.com" in text
        assert "fcg-cache-redis (redis 7.0)" in text

    def test_security_group_report(self, config, state, tmp_path):
        path = ReportRenderer(config, state, output_dir=str(tmp_path / "reports")).write("sg", vpc_id="vpc-1")

        text = path.read_text()
        assert path == tmp_path / "reports" / "security-groups-report.txt"
        assert "VPC ID: vpc-1" in text
        assert "- 443 (HTTPS-External) - external (0.0.0.0/0)" in text
        assert "- 22 (SSH-Internal) - internal (10.0.0.0/16)" in text
        assert "WARNING: This group is permissive" in text
