"""Shared fixtures for the provisioning tests."""

import logging
from typing import List

import pytest

from eks_bootstrap.config.models import AppConfig
from eks_bootstrap.orchestrator.runbooks import DatabaseRunbook, EksRunbook, SecurityGroupRunbook
from eks_bootstrap.provisioners.kubectl import CommandResult, KubectlConfigurator
from eks_bootstrap.state.manager import StateManager
from eks_bootstrap.utils.waiter import Waiter

from tests.fakes import FakeAws, FakeClientManager


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class CommandRecorder:
    """Records external commands instead of running them."""

    def __init__(self):
        self.commands: List[List[str]] = []
        self.failing: set = set()

    def __call__(self, args: List[str]) -> CommandResult:
        self.commands.append(list(args))
        if args[0] in self.failing:
            return CommandResult(1, "", f"{args[0]} failed")
        return CommandResult(0, "ok", "")


@pytest.fixture(autouse=True)
def restore_logging():
    """Keep handlers installed by the CLI from leaking between tests."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def aws():
    return FakeAws()


@pytest.fixture
def clients(aws):
    return FakeClientManager(aws)


@pytest.fixture
def state(tmp_path):
    return StateManager(str(tmp_path))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def waiter(clock):
    return Waiter(clock=clock, sleep=clock.sleep)


@pytest.fixture
def commands():
    return CommandRecorder()


@pytest.fixture
def default_vpc(aws):
    return aws.ec2.add_default_vpc()


@pytest.fixture
def eks_runbook(clients, config, state, waiter, commands):
    return EksRunbook(
        clients, config, state,
        kubectl=KubectlConfigurator(config, runner=commands),
        waiter=waiter,
    )


@pytest.fixture
def sg_runbook(clients, config, state, waiter):
    return SecurityGroupRunbook(clients, config, state, waiter=waiter)


@pytest.fixture
def db_runbook(clients, config, state, waiter):
    return DatabaseRunbook(clients, config, state, waiter=waiter)
