"""Tests for the key=value state files."""

import os
import pathlib
import stat

import pytest

from eks_bootstrap.state.manager import (
    DB_CREDENTIALS_FILE,
    DB_ENDPOINTS_FILE,
    NETWORK_FILE,
    format_env,
    parse_env,
)
from eks_bootstrap.state.models import (
    AccessKeyCredentials,
    DatabaseCredentials,
    Endpoint,
    NetworkOutputs,
)
from eks_bootstrap.utils.errors import PrerequisiteError, StateError


def test_parse_env_ignores_comments_and_blank_lines():
    text = "# generated\n\nVPC_ID=vpc-1\nBROKEN LINE\nSG_ID = sg-1\nURL=a=b\n"

    assert parse_env(text) == {"VPC_ID": "vpc-1", "SG_ID": "sg-1", "URL": "a=b"}


def test_format_env_keeps_order():
    assert format_env({"B": "2", "A": "1"}) == "B=2\nA=1\n"


def test_read_missing_file_is_empty(state):
    assert state.read(NETWORK_FILE) == {}
    assert not state.exists(NETWORK_FILE)


def test_write_is_private_and_leaves_no_temp_file(state, tmp_path):
    state.write(DB_CREDENTIALS_FILE, {"FCG_PAYMENTS_DB_PASSWORD": "secret"})

    path = tmp_path / DB_CREDENTIALS_FILE
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert [p.name for p in tmp_path.iterdir()] == [DB_CREDENTIALS_FILE]


def test_temp_file_is_created_private(state, monkeypatch):
    modes = []
    real_open = os.open

    def recording_open(path, flags, mode=0o777):
        modes.append(mode)
        return real_open(path, flags, mode)

    monkeypatch.setattr(os, "open", recording_open)

    state.write(DB_CREDENTIALS_FILE, {"FCG_PAYMENTS_DB_PASSWORD": "secret"})

    assert modes == [0o600]


def test_failed_write_removes_temp_file(state, tmp_path, monkeypatch):
    def failing_replace(self, target):
        raise OSError("disk full")

    monkeypatch.setattr(pathlib.Path, "replace", failing_replace)

    with pytest.raises(StateError, match="disk full"):
        state.write(DB_CREDENTIALS_FILE, {"FCG_PAYMENTS_DB_PASSWORD": "secret"})
    assert list(tmp_path.iterdir()) == []


def test_merge_keeps_existing_keys(state):
    state.write(DB_CREDENTIALS_FILE, {"A_PASSWORD": "one", "A_PORT": "3306"})

    merged = state.merge(DB_CREDENTIALS_FILE, {"B_PASSWORD": "two", "A_PORT": "3307"})

    assert merged == {"A_PASSWORD": "one", "A_PORT": "3307", "B_PASSWORD": "two"}
    assert state.read(DB_CREDENTIALS_FILE) == merged


def test_network_round_trip(state):
    outputs = NetworkOutputs(vpc_id="vpc-1", igw_id="igw-1", subnet_ids=["subnet-1", "subnet-2"],
                             route_table_id="rtb-1", security_group_id="sg-1")

    state.save_network(outputs)

    assert state.read(NETWORK_FILE)["SUBNET2_ID"] == "subnet-2"
    assert state.has_network()
    assert state.network() == outputs


def test_network_missing_raises_prerequisite_error(state):
    with pytest.raises(PrerequisiteError) as exc_info:
        state.network()

    assert exc_info.value.required_step == "step 1 (network)"
    assert "Run step 1 (network) first" in exc_info.value.suggestions


def test_incomplete_network_state_is_missing(state):
    state.write(NETWORK_FILE, {"VPC_ID": "vpc-1"})

    assert not state.has_network()
    with pytest.raises(PrerequisiteError):
        state.network()


def test_github_credentials(state):
    assert state.github_credentials() is None

    state.save_github_credentials(AccessKeyCredentials(access_key_id="AKIA1", secret_access_key="s3cr3t"))

    assert state.read(".eks-github-credentials") == {"GITHUB_ACCESS_KEY": "AKIA1",
                                                      "GITHUB_SECRET_KEY": "s3cr3t"}
    assert state.github_credentials().secret_access_key == "s3cr3t"


def test_database_credentials_merge_per_prefix(state):
    for prefix, password in (("FCG_A_DB", "pw-a"), ("FCG_B_DB", "pw-b")):
        state.save_database_credentials(DatabaseCredentials(
            prefix=prefix, identifier=prefix.lower(), db_name="app", username="admin",
            password=password, port=3306,
        ))

    assert state.database_credentials("FCG_A_DB").password == "pw-a"
    assert state.database_credentials("FCG_B_DB").password == "pw-b"
    assert state.database_credentials("FCG_C_DB") is None


def test_save_endpoint_updates_known_credentials_only(state):
    state.save_database_credentials(DatabaseCredentials(
        prefix="FCG_A_DB", identifier="a", db_name="app", username="admin", password="pw", port=3306,
    ))

    state.save_endpoint(Endpoint(prefix="FCG_A_DB", address="a.rds.amazonaws.com", port=3306))
    state.save_endpoint(Endpoint(prefix="FCG_X_DB", address="x.rds.amazonaws.com", port=5432))

    endpoints = state.read(DB_ENDPOINTS_FILE)
    assert endpoints["FCG_A_DB_ENDPOINT"] == "a.rds.amazonaws.com"
    assert endpoints["FCG_X_DB_PORT"] == "5432"

    credentials = state.read(DB_CREDENTIALS_FILE)
    assert credentials["FCG_A_DB_ENDPOINT"] == "a.rds.amazonaws.com"
    assert "FCG_X_DB_ENDPOINT" not in credentials
    assert credentials["FCG_A_DB_PASSWORD"] == "pw"
