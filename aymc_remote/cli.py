"""Click CLI for AYMC Remote.

Commands:
- exec: Run a command (non-zero exit is an error)
- stream: Run a command printing output lines as they arrive
- status: AYMC installation and service status
- backend-config: Backend URLs from /etc/aymc/backend.env
- disk: Root filesystem usage
- port-check: Check a port is free
- host-info: Remote OS identity
- logs: journalctl lines for a service
- upload: Copy a local file to the host
- preflight: Pre-installation checks
- install: Install AYMC with a local install-vps.sh
- uninstall: Remove AYMC with a local uninstall.sh
- verify: Post-installation verification
"""

import asyncio
import logging
import sys
from contextlib import aclosing, asynccontextmanager
from functools import wraps
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from aymc_remote import __version__
from aymc_remote.deploy import (
    BackendHealthChecker,
    CheckStatus,
    InstallConfig,
    Installer,
    validate_prerequisites,
    verify_installation,
)
from aymc_remote.models import ConnectionTarget
from aymc_remote.ssh import RemoteStateProbe, SessionSlot, credential_from_options
from aymc_remote.utils.errors import AYMCRemoteError, InstallationError
from aymc_remote.utils.logging import setup_logging

console = Console()
logger = logging.getLogger(__name__)

AUTH_TYPES = ["password", "private_key_file", "private_key_data"]


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


def handle_errors(func):
    """Print AYMC errors and exit with status 1."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except InstallationError as e:
            console.print(f"[red]Installation failed at '{e.stage}': {e}[/]")
            sys.exit(1)
        except (AYMCRemoteError, ValueError) as e:
            console.print(f"[red]Error: {e}[/]")
            sys.exit(1)

    return wrapper


@asynccontextmanager
async def remote_session(ctx: click.Context):
    """Connect with the group options and hold the session exclusively."""
    opts = ctx.obj
    target = ConnectionTarget(host=opts["host"], port=opts["port"], username=opts["user"])
    credential = credential_from_options(
        opts["auth_type"],
        password=opts["password"],
        private_key_path=opts["key_file"],
        private_key_data=opts["key_data"],
        passphrase=opts["passphrase"],
    )

    slot = SessionSlot()
    await slot.connect(target, credential, command_timeout=opts["command_timeout"])
    try:
        async with slot.acquire() as ssh:
            yield ssh
    finally:
        await slot.disconnect()


@click.group()
@click.version_option(version=__version__)
@click.option("--host", envvar="AYMC_SSH_HOST", required=True, help="VPS hostname or IP")
@click.option("--port", envvar="AYMC_SSH_PORT", default=22, type=click.IntRange(0, 65535), help="SSH port")
@click.option("--user", envvar="AYMC_SSH_USER", default="root", help="SSH username")
@click.option(
    "--auth-type",
    envvar="AYMC_SSH_AUTH",
    type=click.Choice(AUTH_TYPES),
    default="password",
    help="Authentication method",
)
@click.option("--password", envvar="AYMC_SSH_PASSWORD", help="SSH password")
@click.option("--key-file", envvar="AYMC_SSH_KEY_FILE", help="Private key path")
@click.option("--key-data", envvar="AYMC_SSH_KEY_DATA", help="Private key content")
@click.option("--passphrase", envvar="AYMC_SSH_PASSPHRASE", help="Private key passphrase")
@click.option("--command-timeout", type=float, default=None, help="Per-command timeout (seconds)")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx,
    host: str,
    port: int,
    user: str,
    auth_type: str,
    password: Optional[str],
    key_file: Optional[str],
    key_data: Optional[str],
    passphrase: Optional[str],
    command_timeout: Optional[float],
    debug: bool,
):
    """AYMC Remote - manage an AYMC installation over SSH."""
    ctx.ensure_object(dict)
    ctx.obj.update(
        host=host,
        port=port,
        user=user,
        auth_type=auth_type,
        password=password,
        key_file=key_file,
        key_data=key_data,
        passphrase=passphrase,
        command_timeout=command_timeout,
    )

    setup_logging(level="DEBUG" if debug else "WARNING", debug_ssh=debug)


@cli.command("exec")
@click.argument("command")
@click.pass_context
@handle_errors
def exec_cmd(ctx, command: str):
    """Run COMMAND and print its output."""

    async def _exec():
        async with remote_session(ctx) as ssh:
            output = await ssh.run_checked(command)
        console.print(output, end="", markup=False, highlight=False)

    run_async(_exec())


@cli.command()
@click.argument("command")
@click.pass_context
@handle_errors
def stream(ctx, command: str):
    """Run COMMAND printing each line as it is produced."""

    async def _stream():
        async with remote_session(ctx) as ssh:
            async with aclosing(ssh.stream(command)) as lines:
                async for line in lines:
                    console.print(line, markup=False, highlight=False)

    run_async(_stream())


@cli.command()
@click.pass_context
@handle_errors
def status(ctx):
    """Show AYMC installation and service status."""

    async def _status():
        async with remote_session(ctx) as ssh:
            svc = await RemoteStateProbe(ssh).check_services()

        table = Table(title=f"AYMC services on {ctx.obj['host']}")
        table.add_column("Component")
        table.add_column("Installed")
        table.add_column("Running")
        table.add_column("Path", style="dim")

        def flag(value: Optional[bool]) -> str:
            if value is None:
                return "-"
            return "[green]yes[/]" if value else "[red]no[/]"

        table.add_row("backend", flag(svc.backend_installed), flag(svc.backend_running), svc.backend_path or "-")
        table.add_row("agent", flag(svc.agent_installed), flag(svc.agent_running), svc.agent_path or "-")
        table.add_row("postgresql", flag(None), flag(svc.postgresql_running), "-")
        console.print(table)

    run_async(_status())


@cli.command("backend-config")
@click.pass_context
@handle_errors
def backend_config(ctx):
    """Show backend URLs derived from /etc/aymc/backend.env."""

    async def _config():
        async with remote_session(ctx) as ssh:
            config = await RemoteStateProbe(ssh).get_backend_config()
        console.print(f"  API:         {config.api_url}")
        console.print(f"  WebSocket:   {config.ws_url}")
        console.print(f"  Environment: {config.environment}")
        console.print(f"  Port:        {config.port}")

    run_async(_config())


@cli.command()
@click.pass_context
@handle_errors
def disk(ctx):
    """Show disk usage of the root filesystem."""

    async def _disk():
        async with remote_session(ctx) as ssh:
            space = await RemoteStateProbe(ssh).get_disk_space()
        console.print(
            f"  {space.used_mb}/{space.total_mb} MB used ({space.percent_used}%), "
            f"{space.available_mb} MB available"
        )

    run_async(_disk())


@cli.command("port-check")
@click.argument("port", type=click.IntRange(0, 65535))
@click.pass_context
@handle_errors
def port_check(ctx, port: int):
    """Check whether PORT is free on the host."""

    async def _port():
        async with remote_session(ctx) as ssh:
            available = await RemoteStateProbe(ssh).check_port_available(port)
        if available:
            console.print(f"  [green]Port {port} available[/]")
        else:
            console.print(f"  [yellow]Port {port} in use (or could not be checked)[/]")

    run_async(_port())


@cli.command("host-info")
@click.pass_context
@handle_errors
def host_info(ctx):
    """Show the remote operating system."""

    async def _info():
        async with remote_session(ctx) as ssh:
            probe = RemoteStateProbe(ssh)
            info = await probe.get_host_info()
            sudo = await probe.has_sudo_access()
            docker = await probe.check_docker()
        console.print(f"  OS:     {info.name} {info.version} ({info.distro})")
        console.print(f"  sudo:   {'yes' if sudo else 'no'}")
        console.print(f"  Docker: {'running' if docker else 'not available'}")

    run_async(_info())


@cli.command()
@click.argument("service")
@click.option("-n", "--lines", default=100, type=click.IntRange(min=1), help="Number of lines")
@click.pass_context
@handle_errors
def logs(ctx, service: str, lines: int):
    """Show journal lines for SERVICE."""

    async def _logs():
        async with remote_session(ctx) as ssh:
            log_lines = await RemoteStateProbe(ssh).get_system_logs(service, lines)
        for line in log_lines:
            console.print(line, markup=False, highlight=False)

    run_async(_logs())


@cli.command()
@click.argument("local_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("remote_path")
@click.pass_context
@handle_errors
def upload(ctx, local_path: str, remote_path: str):
    """Copy LOCAL_PATH to REMOTE_PATH on the host."""

    async def _upload():
        async with remote_session(ctx) as ssh:
            await ssh.upload_file(local_path, remote_path)
        console.print(f"  [green]Uploaded to {remote_path}[/]")

    run_async(_upload())


@cli.command()
@click.option("--app-port", default=8080, type=click.IntRange(1, 65535), help="Backend port to check")
@click.option("--min-disk-mb", default=2048, type=int, help="Required free disk (MB)")
@click.pass_context
@handle_errors
def preflight(ctx, app_port: int, min_disk_mb: int):
    """Run pre-installation checks."""

    async def _preflight():
        async with remote_session(ctx) as ssh:
            report = await validate_prerequisites(
                RemoteStateProbe(ssh), port=app_port, min_disk_mb=min_disk_mb
            )

        table = Table(title="Prerequisites")
        table.add_column("Check")
        table.add_column("Required")
        table.add_column("Status")
        table.add_column("Details")
        for check in report.checks:
            style = "green" if check.status == CheckStatus.PASSED else "red"
            table.add_row(
                check.name,
                "yes" if check.required else "no",
                f"[{style}]{check.status.value}[/]",
                check.message,
            )
        console.print(table)
        console.print(report.summary)
        return report.ready

    if not run_async(_preflight()):
        sys.exit(1)


@cli.command()
@click.option("--script", "script_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Local install-vps.sh")
@click.option("--db-password", envvar="AYMC_DB_PASSWORD", required=True, help="PostgreSQL password")
@click.option("--jwt-secret", envvar="AYMC_JWT_SECRET", required=True, help="Backend JWT secret")
@click.option("--app-port", default="8080", help="Backend port")
@click.pass_context
@handle_errors
def install(ctx, script_path: str, db_password: str, jwt_secret: str, app_port: str):
    """Install AYMC on the host."""
    with open(script_path, "rb") as f:
        script = f.read()

    config = InstallConfig(db_password=db_password, jwt_secret=jwt_secret, app_port=app_port)

    async def _install():
        async with remote_session(ctx) as ssh:
            result = await Installer(ssh).install(
                script,
                config,
                on_line=lambda line: console.print(line, markup=False, highlight=False),
            )
        console.print(f"[green]Install script finished in {result.duration_seconds:.1f}s[/]")

    run_async(_install())


@cli.command()
@click.option("--script", "script_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Local uninstall.sh")
@click.confirmation_option(prompt="Remove AYMC from the host?")
@click.pass_context
@handle_errors
def uninstall(ctx, script_path: str):
    """Uninstall AYMC from the host."""
    with open(script_path, "rb") as f:
        script = f.read()

    async def _uninstall():
        async with remote_session(ctx) as ssh:
            result = await Installer(ssh).uninstall(
                script,
                on_line=lambda line: console.print(line, markup=False, highlight=False),
            )
        console.print(f"[green]Uninstall script finished in {result.duration_seconds:.1f}s[/]")

    run_async(_uninstall())


@cli.command()
@click.option("--http/--no-http", default=True, help="Also query the backend /health endpoint")
@click.pass_context
@handle_errors
def verify(ctx, http: bool):
    """Verify the backend is installed, running and healthy."""

    async def _verify():
        async with remote_session(ctx) as ssh:
            probe = RemoteStateProbe(ssh)
            results = [await verify_installation(probe)]
            if http:
                config = await probe.get_backend_config()

        if http:
            base_url = f"http://{ctx.obj['host']}:{config.port}"
            async with BackendHealthChecker(base_url) as checker:
                results.append(await checker.check_health())

        for result in results:
            mark = "[green]✓[/]" if result.passed else "[red]✗[/]"
            console.print(f"  {mark} {result.name}: {result.message}")
        return all(r.passed for r in results)

    if not run_async(_verify()):
        sys.exit(1)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
