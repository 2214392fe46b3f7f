"""
Main entry point for the Shellwire command-line client.

Opens one interactive SSH session, forwards stdin lines to it and prints
its output, optionally reconnecting when the transport drops.
"""

import asyncio
import logging
import os
import shutil
import signal
import sys
import threading
from typing import AsyncIterator, Optional, Tuple

import typer
import yaml

from . import __version__
from .application.registry import SessionRegistry
from .core.domain.connection import AuthMethod, ConnectionProfile
from .core.domain.session import SessionError, SessionStatus
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.credentials import InMemoryCredentialStore
from .infrastructure.logging.setup import setup_logging
from .infrastructure.reactor import Reactor
from .infrastructure.ssh.engine import SSHEngine
from .infrastructure.ssh.session import SSHSession

cli = typer.Typer(
    name="shellwire",
    help="Interactive SSH remote shell client with automatic reconnect"
)

logger = logging.getLogger(__name__)

PASSPHRASE_ENV = "SHELLWIRE_KEY_PASSPHRASE"


def parse_destination(destination: str) -> Tuple[str, str]:
    """Split ``user@host`` into its username and host."""
    username, sep, host = destination.rpartition("@")
    if not sep or not username or not host:
        raise ValueError(f"Destination must look like user@host, got {destination!r}")
    return username, host


def _load_config(config_file: Optional[str]) -> ApplicationConfig:
    try:
        return ConfigLoader().load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1)


@cli.command()
def connect(
    destination: str = typer.Argument(..., help="Remote account as user@host"),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Remote SSH port"
    ),
    identity: Optional[str] = typer.Option(
        None, "--identity", "-i", help="Private key file for public key authentication"
    ),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
    reconnect: bool = typer.Option(
        True, "--reconnect/--no-reconnect", help="Reconnect when the connection drops"
    )
) -> None:
    """Open an interactive shell on a remote host."""

    config = _load_config(config_file)
    if log_level:
        config.logging.level = log_level.upper()
    setup_logging(config.logging)

    try:
        username, host = parse_destination(destination)
        profile = ConnectionProfile(
            host=host,
            username=username,
            port=port or config.ssh.port,
            auth_method=AuthMethod.PUBLIC_KEY if identity else AuthMethod.PASSWORD,
            key_path=identity,
            connect_timeout=config.ssh.connect_timeout,
            keepalive_interval=config.ssh.keepalive_interval,
        )
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=2)

    store = InMemoryCredentialStore()
    if identity:
        passphrase = os.getenv(PASSPHRASE_ENV)
        if passphrase:
            store.set_passphrase(profile.connection_id, passphrase)
    else:
        password = typer.prompt(f"{profile.display_address}'s password", hide_input=True)
        store.set_password(profile.connection_id, password)

    try:
        exit_code = asyncio.run(run_session(config, profile, store, reconnect))
    except KeyboardInterrupt:
        logger.info("Session interrupted by user")
        exit_code = 130

    raise typer.Exit(code=exit_code)


@cli.command()
def show_config(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    )
) -> None:
    """Print the effective configuration as YAML."""
    config = _load_config(config_file)
    typer.echo(yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False))


@cli.command()
def init_config(
    output: str = typer.Option(
        "shellwire.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Generate a default configuration file."""
    try:
        ConfigLoader().save_config(ApplicationConfig(), output, format)
        typer.echo(f"Default configuration saved to {output}")
    except ValueError as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        raise typer.Exit(code=1)


@cli.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"Shellwire v{__version__}")


async def run_session(
    config: ApplicationConfig,
    profile: ConnectionProfile,
    store: InMemoryCredentialStore,
    auto_reconnect: bool = True
) -> int:
    """
    Run one interactive session until it ends.

    Returns:
        Process exit code
    """
    reactor = Reactor()
    registry = SessionRegistry(SSHEngine(reactor, config), store)

    try:
        session_id = await registry.open(profile)
    except SessionError as e:
        typer.echo(f"Connection to {profile.display_address} failed: {e.message} ({e.code.value})", err=True)
        return 1

    loop = asyncio.get_running_loop()
    lines: 'asyncio.Queue[bytes]' = asyncio.Queue()
    _start_stdin_reader(loop, lines)
    reactor.spawn(_pump_input(registry, session_id, lines), name="stdin")
    _watch_terminal_size(loop, registry, session_id, reactor)

    try:
        while True:
            session = registry.get(session_id)
            if not isinstance(session, SSHSession):
                return 0
            await _pump_output(session.output)

            if session.is_closed:
                return 0
            if session.state.status == SessionStatus.FAILED:
                return 1
            if not auto_reconnect or session.disconnect_reason is None:
                return 0

            typer.echo(f"\r\nConnection lost: {session.disconnect_reason.message}", err=True)
            while not session.state.is_connected:
                if session.is_closed:
                    return 0
                if session.reconnect_attempt >= config.reconnect.max_attempts:
                    return 1
                try:
                    await registry.reconnect(session_id)
                except SessionError as e:
                    typer.echo(f"Reconnect failed: {e.message} ({e.code.value})", err=True)
    finally:
        if hasattr(signal, "SIGWINCH"):
            try:
                loop.remove_signal_handler(signal.SIGWINCH)
            except (NotImplementedError, RuntimeError) as e:
                logger.debug(f"Could not remove resize handler: {e}")
        await registry.close_all()
        await reactor.shutdown()


async def _pump_output(stream: AsyncIterator[bytes]) -> None:
    out = sys.stdout.buffer
    async for chunk in stream:
        out.write(chunk)
        out.flush()


async def _pump_input(registry: SessionRegistry, session_id: str, lines: 'asyncio.Queue[bytes]') -> None:
    while True:
        line = await lines.get()
        if not line:
            logger.debug("End of input, closing session")
            await registry.close(session_id)
            return
        try:
            await registry.write(session_id, line)
        except SessionError as e:
            logger.debug(f"Input dropped: {e}")


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, lines: 'asyncio.Queue[bytes]') -> None:
    def read() -> None:
        while True:
            line = sys.stdin.buffer.readline()
            loop.call_soon_threadsafe(lines.put_nowait, line)
            if not line:
                return

    threading.Thread(target=read, daemon=True, name="stdin-reader").start()


def _watch_terminal_size(
    loop: asyncio.AbstractEventLoop,
    registry: SessionRegistry,
    session_id: str,
    reactor: Reactor
) -> None:
    def sync_size() -> None:
        size = shutil.get_terminal_size()
        reactor.spawn(registry.resize(session_id, size.columns, size.lines), name="resize")

    sync_size()
    if hasattr(signal, "SIGWINCH"):
        try:
            loop.add_signal_handler(signal.SIGWINCH, sync_size)
        except (NotImplementedError, RuntimeError):
            logger.debug("Terminal resize signals are not available")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
