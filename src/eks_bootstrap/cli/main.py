"""Main CLI entry point."""

import shutil
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional

import click
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from eks_bootstrap import __version__
from eks_bootstrap.cli.progress import RichProgressPrinter
from eks_bootstrap.config.models import AppConfig
from eks_bootstrap.config.parser import DEFAULT_CONFIG_FILE, load_config
from eks_bootstrap.orchestrator.prerequisites import PrerequisiteChecker
from eks_bootstrap.orchestrator.runbooks import DatabaseRunbook, EksRunbook, SecurityGroupRunbook
from eks_bootstrap.orchestrator.steps import EksStep, RunbookResult
from eks_bootstrap.orchestrator.verifier import CheckResult, Verifier
from eks_bootstrap.provisioners.kubectl import KubectlConfigurator, run_command
from eks_bootstrap.state.manager import DB_CREDENTIALS_FILE, DB_ENDPOINTS_FILE, StateManager
from eks_bootstrap.utils.aws_client import AWSClientManager
from eks_bootstrap.utils.errors import DeploymentError, error_handler
from eks_bootstrap.utils.logging import get_logger, setup_logging
from eks_bootstrap.utils.waiter import Waiter

console = Console()
logger = get_logger(__name__)

SECRET_SUFFIXES = ('_PASSWORD', '_SECRET_KEY')


@click.group()
@click.option('--config', 'config_path', default=DEFAULT_CONFIG_FILE, show_default=True,
              help='Path to configuration file (optional)')
@click.option('--profile', help='AWS profile to use')
@click.option('--region', help='AWS region')
@click.option('--state-dir', default='.', show_default=True, type=click.Path(file_okay=False),
              help='Directory for state files and reports')
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.version_option(__version__, prog_name='eks-bootstrap')
@click.pass_context
def cli(ctx, config_path, profile, region, state_dir, log_level):
    """Idempotent AWS provisioning runbooks for EKS, security groups and databases."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    ctx.obj['profile'] = profile
    ctx.obj['region'] = region
    ctx.obj['state_dir'] = state_dir
    ctx.obj['log_level'] = log_level


class Session:
    """Objects shared by the commands of one invocation.

    ``ctx.obj`` may carry ``client_factory``, ``which`` and
    ``command_runner`` to replace the AWS client manager, the PATH lookup
    and the external command runner.
    """

    def __init__(self, obj: Dict):
        self.obj = obj
        overrides = {'project': {'region': obj['region']}} if obj.get('region') else None
        self.config: AppConfig = load_config(obj['config_path'], overrides)
        client_factory = obj.get('client_factory', AWSClientManager)
        self.clients = client_factory(profile=obj.get('profile'), region=self.config.project.region)
        self.state = StateManager(obj['state_dir'])
        self.which = obj.get('which', shutil.which)
        self.waiter = Waiter()
        self.printer = RichProgressPrinter(console)

    def runbook_kwargs(self) -> Dict:
        return {
            'waiter': self.waiter,
            'progress': self.printer,
            'checker': PrerequisiteChecker(self.clients, self.config, which=self.which),
        }

    def eks(self) -> EksRunbook:
        kubectl = KubectlConfigurator(self.config, runner=self.obj.get('command_runner', run_command))
        return EksRunbook(self.clients, self.config, self.state, kubectl=kubectl, **self.runbook_kwargs())

    def security_groups(self) -> SecurityGroupRunbook:
        return SecurityGroupRunbook(self.clients, self.config, self.state, **self.runbook_kwargs())

    def databases(self) -> DatabaseRunbook:
        return DatabaseRunbook(self.clients, self.config, self.state, **self.runbook_kwargs())

    def verifier(self) -> Verifier:
        return Verifier(self.clients, self.config, which=self.which)

    def checker(self) -> PrerequisiteChecker:
        return PrerequisiteChecker(self.clients, self.config, which=self.which)


@contextmanager
def handle_errors(session: Optional[Session] = None):
    """Fail fast: print the first unrecoverable error and exit with status 1."""
    try:
        yield
    except KeyboardInterrupt:
        if session:
            session.waiter.cancel()
        console.print("\n[yellow]Interrupted.[/yellow] Resources already created will be "
                      "detected on the next run.")
        sys.exit(1)
    except (DeploymentError, ClientError, BotoCoreError) as e:
        error = error_handler.handle_exception(e)
        error_handler.log_error(error)
        console.print(error.to_user_message(), style='red', markup=False)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error")
        console.print(f"[red]Unexpected error:[/red] {e}")
        sys.exit(1)
    finally:
        if session:
            session.printer.close()


def select_action(ctx: click.Context, actions: Dict[str, object]) -> Optional[str]:
    """Return the single chosen action, printing help when none is given.

    Logging is set up only once an action has been chosen.

    Raises:
        click.UsageError: If more than one action is given
    """
    chosen = [name for name, value in actions.items() if value not in (None, False)]
    if len(chosen) > 1:
        raise click.UsageError(
            f"Options {', '.join('--' + name.replace('_', '-') for name in chosen)} "
            "are mutually exclusive"
        )
    if not chosen:
        click.echo(ctx.get_help())
        ctx.exit(0)
    setup_logging(ctx.obj['log_level'], Path(ctx.obj['state_dir']) / '.eks-bootstrap' / 'logs')
    return chosen[0]


# Output helpers

def print_result(result: RunbookResult, title: str) -> None:
    lines = [
        "[green]✓ Complete[/green]\n",
        f"Created: {len(result.created)}",
        f"Already existed: {len(result.skipped)}",
        f"Duration: {result.duration:.2f}s",
    ]
    if result.report_path:
        lines.append(f"Report: {result.report_path}")
    console.print(Panel.fit("\n".join(lines), title=title, border_style="green"))


def print_checks(title: str, checks: List[CheckResult]) -> bool:
    table = Table(title=title)
    table.add_column("Check", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="dim")

    for check in checks:
        if not check.passed:
            status = "[red]✗ FAIL[/red]"
        elif check.warning:
            status = "[yellow]⚠ WARN[/yellow]"
        else:
            status = "[green]✓ OK[/green]"
        table.add_row(check.name, status, check.detail)

    console.print(table)
    passed = all(check.passed for check in checks)
    if passed:
        console.print("[green]All checks passed[/green]")
    else:
        console.print("[red]Some checks failed[/red]")
    return passed


def run_verify(session: Session, runbook: str) -> None:
    report = session.verifier().verify(runbook)
    if not print_checks(f"Verification: {runbook}", report.checks):
        sys.exit(1)


def run_check(session: Session, runbook: str) -> None:
    if not print_checks(f"Prerequisites: {runbook}", session.checker().check(runbook)):
        sys.exit(1)


def mask(key: str, value: str, show_secrets: bool) -> str:
    if show_secrets or not key.endswith(SECRET_SUFFIXES):
        return value
    return '********'


# Commands

@cli.command()
@click.option('--all', 'run_all', is_flag=True, help='Run all seven steps in order')
@click.option('--step', type=click.IntRange(1, len(EksStep)), help='Run a single step (1-7)')
@click.option('--verify', is_flag=True, help='Verify the created resources')
@click.option('--check', is_flag=True, help='Check prerequisites only')
@click.option('--report', is_flag=True, help='Write the deployment report')
@click.pass_context
def eks(ctx, run_all, step, verify, check, report):
    """Provision the EKS cluster, its network and IAM principals.

    \b
    Steps:
      1. Network (VPC, subnets, routing, security group)
      2. IAM roles for the cluster and nodes
      3. Admin user
      4. CI/CD user and access keys
      5. IAM propagation delay
      6. EKS cluster
      7. Node group and kubectl configuration
    """
    action = select_action(ctx, {'all': run_all, 'step': step, 'verify': verify,
                                 'check': check, 'report': report})
    with handle_errors():
        session = Session(ctx.obj)
        with handle_errors(session):
            if action == 'all':
                console.print(Panel.fit(
                    f"[bold]Deploying cluster {session.config.cluster_name}[/bold]\n"
                    f"Project: {session.config.prefix}\n"
                    f"Region: {session.config.project.region}",
                    title="EKS Deployment",
                    border_style="cyan"
                ))
                print_result(session.eks().run_all(), "EKS Deployment Complete")
            elif action == 'step':
                eks_step = EksStep(step)
                print_result(session.eks().run_step(eks_step), f"Step {eks_step.value}: {eks_step.title}")
            elif action == 'verify':
                run_verify(session, 'eks')
            elif action == 'check':
                run_check(session, 'eks')
            elif action == 'report':
                console.print(f"[green]✓[/green] Report saved to {session.eks().write_report()}")


@cli.command()
@click.option('--all', 'run_all', is_flag=True, help='Create every security group of the catalogue')
@click.option('--sg', 'group', metavar='NAME', help='Create a single security group')
@click.option('--verify', is_flag=True, help='Verify the created security groups')
@click.option('--check', is_flag=True, help='Check prerequisites only')
@click.option('--report', is_flag=True, help='Write the security groups report')
@click.option('--list', 'list_groups', is_flag=True, help='List security groups tagged with the project')
@click.pass_context
def sg(ctx, run_all, group, verify, check, report, list_groups):
    """Provision the application security groups."""
    action = select_action(ctx, {'all': run_all, 'sg': group, 'verify': verify,
                                 'check': check, 'report': report, 'list': list_groups})
    with handle_errors():
        session = Session(ctx.obj)
        with handle_errors(session):
            if action == 'all':
                print_result(session.security_groups().run_all(), "Security Groups Complete")
            elif action == 'sg':
                print_result(session.security_groups().run_group(group), f"Security Group: {group}")
            elif action == 'verify':
                run_verify(session, 'sg')
            elif action == 'check':
                run_check(session, 'sg')
            elif action == 'report':
                console.print(f"[green]✓[/green] Report saved to {session.security_groups().write_report()}")
            elif action == 'list':
                _print_group_list(session)


def _print_group_list(session: Session) -> None:
    groups = session.security_groups().list_groups()
    if not groups:
        console.print(f"[dim]No security groups tagged with Project={session.config.prefix}[/dim]")
        return

    table = Table(title=f"Security groups: {session.config.prefix}")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("ID")
    table.add_column("VPC", style="dim")
    table.add_column("Rules", justify="right")
    table.add_column("Description", style="dim")
    for info in groups:
        table.add_row(info.name, info.group_id, info.vpc_id or "-", str(info.rule_count), info.description)
    console.print(table)


@cli.command()
@click.option('--all', 'run_all', is_flag=True, help='Create every database and the cache, then wait')
@click.option('--db', 'database', metavar='NAME', help='Create a single database (or redis)')
@click.option('--verify', is_flag=True, help='Verify the created databases')
@click.option('--check', is_flag=True, help='Check prerequisites only')
@click.option('--report', is_flag=True, help='Write the database report')
@click.option('--wait', 'wait_all', is_flag=True, help='Wait for every database to become available')
@click.option('--endpoints', is_flag=True, help='Discover and record endpoints')
@click.option('--credentials', is_flag=True, help='Show recorded credentials')
@click.option('--show-secrets', is_flag=True, help='Do not mask passwords with --credentials')
@click.pass_context
def db(ctx, run_all, database, verify, check, report, wait_all, endpoints, credentials, show_secrets):
    """Provision the application databases and the Redis cache."""
    action = select_action(ctx, {'all': run_all, 'db': database, 'verify': verify, 'check': check,
                                 'report': report, 'wait': wait_all, 'endpoints': endpoints,
                                 'credentials': credentials})
    if action == 'credentials':
        with handle_errors():
            _print_credentials(StateManager(ctx.obj['state_dir']), show_secrets)
        return

    with handle_errors():
        session = Session(ctx.obj)
        with handle_errors(session):
            if action == 'all':
                print_result(session.databases().run_all(), "Databases Complete")
            elif action == 'db':
                print_result(session.databases().run_database(database), f"Database: {database}")
            elif action == 'verify':
                run_verify(session, 'db')
            elif action == 'check':
                run_check(session, 'db')
            elif action == 'report':
                console.print(f"[green]✓[/green] Report saved to {session.databases().write_report()}")
            elif action == 'wait':
                session.databases().wait_all()
                console.print("[green]✓[/green] All databases are available")
            elif action == 'endpoints':
                recorded = session.databases().update_endpoints()
                for endpoint in recorded:
                    console.print(f"[green]✓[/green] {endpoint.prefix}: {endpoint.address}:{endpoint.port}")
                if not recorded:
                    console.print("[dim]No endpoints available yet[/dim]")


def _print_credentials(state: StateManager, show_secrets: bool) -> None:
    credentials = state.read(DB_CREDENTIALS_FILE)
    if not credentials:
        console.print(f"[yellow]Credentials file {state.path(DB_CREDENTIALS_FILE)} not found.[/yellow]")
        console.print("Run [cyan]eks-bootstrap db --all[/cyan] to create the databases first.")
        return

    console.print(f"[bold]Credentials in {state.path(DB_CREDENTIALS_FILE)}:[/bold]")
    for key, value in credentials.items():
        console.print(f"{key}={mask(key, value, show_secrets)}", markup=False)
    console.print("[yellow]Keep this file secure and never commit it.[/yellow]")

    endpoints = state.read(DB_ENDPOINTS_FILE)
    if endpoints:
        console.print(f"\n[bold]Endpoints in {state.path(DB_ENDPOINTS_FILE)}:[/bold]")
        for key, value in endpoints.items():
            console.print(f"{key}={value}", markup=False)


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
