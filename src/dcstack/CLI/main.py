# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Command Line Interface for dcstack.
"""
import functools
import json
import logging
import sys
import click
from ..ENRICHMENT.placeholders import UnresolvedVariablesError
from ..MANAGERS.environment_manager import CredentialConflictError
from ..MANAGERS.stack_manager import StackManager
from ..MANAGERS.stack_store import StackNotFoundError
from ..MODELS.engine_config import EngineConfig
from ..MODELS.stack import ComposeAction
from ..PARSERS.compose_parser import ComposeParseError
from ..RUNNERS.process_runner import CommandFailedError

LOG_FORMAT = '[%(levelname)s] %(message)s'

# Exit status when the credential store is inconsistent
CONFLICT_EXIT_CODE = 2


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO),
                        format=LOG_FORMAT, stream=sys.stderr, force=True)


def echo_output(line: str, stream: str) -> None:
    click.echo(line, nl=False, err=(stream == "stderr"))


def reports_errors(command):
    """
    Turns engine errors into an error message and a non-zero exit status.
    """
    @functools.wraps(command)
    def wrapper(*args, **kwargs):
        ctx = click.get_current_context()
        try:
            return command(*args, **kwargs)
        except CredentialConflictError as e:
            click.echo(f"Fatal: {e}", err=True)
            ctx.exit(CONFLICT_EXIT_CODE)
        except UnresolvedVariablesError as e:
            click.echo(f"Error: {e}. Nothing was deployed.", err=True)
            ctx.exit(1)
        except (StackNotFoundError, ComposeParseError, CommandFailedError, ValueError, OSError) as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
    return wrapper


def _manager(ctx) -> StackManager:
    return ctx.obj['manager']


def _read(file) -> str:
    return file.read() if file is not None else None


@click.group()
@click.option('--stacks-dir', envvar='DCSTACK_STACKS_DIR', help='Directory holding the stack documents')
@click.option('--env-path', envvar='DCSTACK_ENV_PATH', help='Persisted environment file')
@click.option('--secrets-dir', envvar='DCSTACK_SECRETS_DIR', help='Directory of secret files')
@click.option('--secret-tool', envvar='DCSTACK_SECRET_TOOL', help='Secret-store command')
@click.option('--network', envvar='DCSTACK_NETWORK', help='Shared network every service joins')
@click.option('--log-level', default='INFO', show_default=True,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False))
@click.pass_context
def cli(ctx, stacks_dir, env_path, secrets_dir, secret_tool, network, log_level):
    """
    dcstack - compose stack enrichment and reconciliation.

    Stores compose documents, adds proxy labels, shared networking, secrets
    and resource defaults to them, and deploys them with docker compose.
    """
    configure_logging(log_level)
    ctx.ensure_object(dict)
    if 'manager' not in ctx.obj:
        config = EngineConfig.from_environment(
            stacks_dir=stacks_dir,
            env_path=env_path,
            secrets_dir=secrets_dir,
            secret_tool=secret_tool,
            shared_network=network,
        )
        ctx.obj['manager'] = StackManager(config)


@cli.command('ls')
@click.option('--json', 'as_json', is_flag=True, help='Print inspection records as JSON')
@click.pass_context
@reports_errors
def list_stacks(ctx, as_json):
    """List stacks, deployed or not."""
    stacks = _manager(ctx).list_stacks()
    if as_json:
        click.echo(json.dumps([stack.to_dict() for stack in stacks], indent=2))
        return

    click.echo(f"{'STACK':20} {'CONTAINER':25} {'IMAGE':35} {'STATE':10}")
    click.echo("-" * 93)
    for stack in stacks:
        if not stack.containers:
            click.echo(f"{stack.name:20} {'-':25} {'-':35} {'-':10}")
        for record in stack.containers:
            click.echo(f"{stack.name:20} {record.container_name:25} {record.config.image:35} {record.state.status:10}")


@cli.command()
@click.argument('name')
@click.option('--file', '-f', type=click.File('r'), help='Compose file, "-" for stdin')
@click.pass_context
@reports_errors
def enrich(ctx, name, file):
    """Show the enriched document without storing or deploying it."""
    documents = _manager(ctx).apply(name, _read(file), dry_run=True)
    click.echo(documents.effective_text, nl=False)


@cli.command()
@click.argument('name')
@click.option('--file', '-f', type=click.File('r'), required=True, help='Compose file, "-" for stdin')
@click.pass_context
@reports_errors
def save(ctx, name, file):
    """Store a stack without deploying it."""
    _manager(ctx).apply(name, _read(file), ComposeAction.NONE)
    click.echo(f"Stack {name} saved.")


def _action_command(action: ComposeAction, help_text: str):
    @click.argument('name')
    @click.option('--file', '-f', type=click.File('r'), help='Compose file, "-" for stdin (default: stored document)')
    @click.pass_context
    @reports_errors
    def command(ctx, name, file):
        _manager(ctx).apply(name, _read(file), action, sink=echo_output)
        click.echo(f"Stack {name}: {action.value} done.")

    command.__doc__ = help_text
    return cli.command(action.value)(command)


up = _action_command(ComposeAction.UP, "Start services of a stack.")
down = _action_command(ComposeAction.DOWN, "Stop and remove the containers of a stack.")
stop = _action_command(ComposeAction.STOP, "Stop the containers of a stack.")
start = _action_command(ComposeAction.START, "Start stopped containers of a stack.")
create = _action_command(ComposeAction.CREATE, "Create the containers of a stack without starting them.")
rm = _action_command(ComposeAction.RM, "Remove the stopped containers of a stack.")


@cli.command()
@click.argument('name')
@click.option('--effective', is_flag=True, help='Show the enriched document')
@click.pass_context
@reports_errors
def show(ctx, name, effective):
    """Print a stored document."""
    click.echo(_manager(ctx).show(name, effective), nl=False)


@cli.command()
@click.argument('name')
@click.pass_context
@reports_errors
def delete(ctx, name):
    """Remove the stored documents of a stack."""
    if _manager(ctx).delete(name):
        click.echo(f"Stack {name} deleted.")
    else:
        raise StackNotFoundError(name)


@cli.command()
@click.argument('name')
@click.pass_context
@reports_errors
def export(ctx, name):
    """Reconstruct a compose document from a stack's containers."""
    click.echo(_manager(ctx).export(name), nl=False)


@cli.command('vars')
@click.argument('name')
@click.option('--register', is_flag=True, help='Add unresolved variables to the environment file')
@click.pass_context
@reports_errors
def variables(ctx, name, register):
    """List the variables a stack references and where they resolve from."""
    manager = _manager(ctx)
    report = manager.variables(name)
    click.echo(f"{'VARIABLE':30} {'SOURCE':15}")
    click.echo("-" * 46)
    for variable, source in report.items():
        click.echo(f"{variable:30} {source or 'UNRESOLVED':15}")

    if register:
        added = manager.register_variables(name)
        if added:
            click.echo(f"Added to {manager.config.env_path}: {', '.join(added)}")


@cli.command()
@click.argument('name')
@click.pass_context
@reports_errors
def ports(ctx, name):
    """Show services that use privileged ports (below 1024)."""
    found = _manager(ctx).privileged_ports(name)
    if not found:
        click.echo("No privileged ports.")
        return
    for service, port in found.items():
        click.echo(f"{service:25} {port}")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
