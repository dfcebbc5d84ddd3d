"""
Main application entry point for the Clash monitor.

Thin command-line front end:
- dashboard: live terminal dashboard (logs, proxies, traffic)
- status: one-shot overview of the running daemon
- check: delay-test the selected node of every selector group
- node: list proxy groups and members, or switch a group's node
- policy: switch routing mode (global, rule, direct)
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from clashmon.api.client import ClashClient
from clashmon.api.models import SELECTOR
from clashmon.core.config import Config
from clashmon.core.exceptions import ClashMonitorError
from clashmon.core.logger import get_logger, setup_logging
from clashmon.dashboard.app import run_dashboard
from clashmon.dashboard.render import format_speed

logger = get_logger(__name__)

POLICY_MODES = ["global", "rule", "direct"]


async def show_status(config: Config, console: Console) -> None:
    """Print mode, traffic, connection count and core version."""
    console.print("[bold cyan]=== Clash Status ===[/bold cyan]")

    async with ClashClient.from_config(config) as client:
        try:
            clash_config = await client.get_config()
        except ClashMonitorError as e:
            console.print(f"- [bold]API:[/bold] [red]unreachable ({e})[/red]")
            return

        inbound = "[green]TUN[/green]" if clash_config.tun_enabled else "[yellow]HTTP proxy[/yellow]"
        console.print(f"- [bold]Inbound:[/bold] {inbound}")
        console.print(f"- [bold]Mode:[/bold] [green]{clash_config.mode}[/green]")
        if clash_config.mixed_port:
            console.print(f"- [bold]Mixed port:[/bold] [cyan]{clash_config.mixed_port}[/cyan]")
        if clash_config.port:
            console.print(f"- [bold]HTTP port:[/bold] [cyan]{clash_config.port}[/cyan]")
        if clash_config.log_level:
            console.print(f"- [bold]Log level:[/bold] {clash_config.log_level}")

        try:
            traffic = await client.get_traffic()
            console.print(f"- [bold]Upload:[/bold] [green]{format_speed(traffic.up)}/s[/green]")
            console.print(f"- [bold]Download:[/bold] [green]{format_speed(traffic.down)}/s[/green]")
        except ClashMonitorError as e:
            logger.debug(f"Traffic snapshot unavailable: {e}")

        try:
            count = await client.get_connection_count()
            console.print(f"- [bold]Connections:[/bold] [cyan]{count}[/cyan]")
        except ClashMonitorError as e:
            logger.debug(f"Connection count unavailable: {e}")

        try:
            version = await client.get_version()
            console.print(f"- [bold]Version:[/bold] [blue]{version.version}[/blue]")
        except ClashMonitorError as e:
            logger.debug(f"Version unavailable: {e}")


async def check_nodes(config: Config, console: Console) -> None:
    """Delay-test the selected node of every selector group."""
    async with ClashClient.from_config(config) as client:
        proxies = await client.get_proxies()

        groups = sorted(name for name, item in proxies.items() if item.type == SELECTOR)
        if not groups:
            console.print("No proxy groups found.")
            return

        console.print("Checking node status...")
        for name in groups:
            now = proxies[name].now
            if not now:
                continue
            try:
                delay = await client.delay_test(now)
            except ClashMonitorError as e:
                logger.debug(f"Delay test failed for {now}: {e}")
                console.print(f"Group [cyan]{name}[/cyan]: [yellow]{now}[/yellow] ... [red]timeout/error[/red]")
                continue

            color = "green" if delay < 200 else "yellow" if delay < 500 else "red"
            console.print(
                f"Group [cyan]{name}[/cyan]: [yellow]{now}[/yellow] ... [{color}]{delay} ms[/{color}]"
            )


async def select_node(
    config: Config,
    console: Console,
    group: Optional[str] = None,
    member: Optional[str] = None
) -> None:
    """
    List selector groups, list a group's members, or switch its node.

    Args:
        config: Loaded configuration
        console: Output console
        group: Selector group (list groups if None)
        member: Node to select (list members if None)

    Raises:
        ClashMonitorError: If the group or member does not exist
    """
    async with ClashClient.from_config(config) as client:
        proxies = await client.get_proxies()

        groups = sorted(name for name, item in proxies.items() if item.type == SELECTOR)
        if not groups:
            console.print("No proxy groups found.")
            return

        if group is None:
            for name in groups:
                console.print(f"[cyan]{name}[/cyan]: {proxies[name].now or ''}")
            return

        if group not in groups:
            raise ClashMonitorError(f"Unknown proxy group: {group}")

        members = proxies[group].all or []
        current = proxies[group].now or ""

        if member is None:
            for name in members:
                marker = " [green](current)[/green]" if name == current else ""
                console.print(f"- {name}{marker}")
            return

        if member not in members:
            raise ClashMonitorError(f"{member} is not a member of {group}")

        if member == current:
            console.print(f"[green]{member}[/green] is already selected.")
            return

        await client.select_proxy(group, member)
        logger.info("Proxy selected", group=group, proxy=member)

    console.print(f"Switched {group} to [green]{member}[/green]")


async def set_policy(
config: Config, console: Console, mode: str) -> None:
    """Switch the daemon's routing mode."""
    async with ClashClient.from_config(config) as client:
        await client.update_config({"mode": mode})
    console.print(f"Routing mode set to [green]{mode}[/green]")


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="clash-monitor",
        description="Monitor and control a running Clash proxy daemon."
    )
    parser.add_argument("--api-url", help="External controller URL (env: CLASH_API_URL)")
    parser.add_argument("--secret", help="External controller secret (env: CLASH_API_SECRET)")
    parser.add_argument("--log-level", help="Log level (env: LOG_LEVEL)")
    parser.add_argument("--log-file", help="Log file path (env: LOG_FILE)")
    parser.add_argument("--env-file", type=Path, help="Path to .env file")
    parser.add_argument("--show-config", action="store_true", help="Print the effective configuration first")

    subparsers = parser.add_subparsers(dest="command", required=True)

    dashboard = subparsers.add_parser("dashboard", help="Live terminal dashboard")
    dashboard.add_argument("--tick-rate", type=float, help="Seconds between redraw ticks")
    dashboard.add_argument("--poll-interval", type=float, help="Seconds between proxy polls")

    subparsers.add_parser("status", help="Show daemon status")
    subparsers.add_parser("check", help="Test delay of selected nodes")

    node = subparsers.add_parser("node", help="List proxy groups or switch a group's node")
    node.add_argument("group", nargs="?", help="Selector group (list groups if omitted)")
    node.add_argument("member", nargs="?", help="Node to select (list members if omitted)")

    policy = subparsers.add_parser("policy", help="Set routing mode")
    policy.add_argument("mode", choices=POLICY_MODES)

    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Build Config from the environment with CLI flags taking precedence."""
    overrides = {
        "CLASH_API_URL": args.api_url,
        "CLASH_API_SECRET": args.secret,
        "LOG_LEVEL": args.log_level,
        "LOG_FILE": args.log_file,
        "DASHBOARD_TICK_RATE": getattr(args, "tick_rate", None),
        "DASHBOARD_POLL_INTERVAL": getattr(args, "poll_interval", None),
    }
    return Config(args.env_file, overrides=overrides)


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    console = Console()
    err_console = Console(stderr=True)

    try:
        config = load_config(args)
    except ClashMonitorError as e:
        err_console.print(f"[red]{e}[/red]")
        return 1

    setup_logging(config.logging.level, config.logging.file)

    if args.show_config:
        config.print_summary()

    try:
        if args.command == "dashboard":
            await run_dashboard(config)
        elif args.command == "status":
            await show_status(config, console)
        elif args.command == "check":
            await check_nodes(config, console)
        elif args.command == "node":
            await select_node(config, console, args.group, args.member)
        elif args.command == "policy":
            await set_policy(config, console, args.mode)
    except ClashMonitorError as e:
        # The dashboard has already restored the terminal at this point
        logger.debug("Command failed", command=args.command, error=e)
        err_console.print(f"[red]Error:[/red] {e}")
        return 1

    return 0


def cli() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    cli()
