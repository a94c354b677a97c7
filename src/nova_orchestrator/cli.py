"""
Command-line interface for the orchestrator.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

import yaml
from rich.console import Console
from rich.table import Table

from nova_orchestrator.config import OrchestratorConfig
from nova_orchestrator.errors import ConfigError
from nova_orchestrator.logging import setup_logging
from nova_orchestrator.sse import (
    DONE,
    ERROR,
    INSIGHT,
    MODE,
    PLAN_READY,
    STEP_COMPLETE,
    STEP_START,
    TOOL_CALL,
    VALIDATION_COMPLETE,
    SSEEvent,
    SSEWriter,
    parse_frames,
)
from nova_orchestrator.storage import Storage
from nova_orchestrator.tools import create_default_registry

console = Console()


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Nova AI orchestrator",
        prog="nova",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging)",
    )
    parser.add_argument(
        "-c",
        "--config",
        help="YAML config file (defaults to environment variables)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8080, help="Bind port")

    run_parser = subparsers.add_parser("run", help="Run a prompt and show its events")
    run_parser.add_argument("prompt", help="Instruction to run")
    run_parser.add_argument("-p", "--project", default="default", help="Project id")
    run_parser.add_argument("-u", "--user", default="cli", help="User id")

    history_parser = subparsers.add_parser("history", help="Show recent actions")
    history_parser.add_argument("-p", "--project", default="default", help="Project id")
    history_parser.add_argument("-u", "--user", default="cli", help="User id")
    history_parser.add_argument("-n", "--limit", type=int, default=20, help="Number of actions")
    history_parser.add_argument("--json", action="store_true", help="Output as JSON")

    subparsers.add_parser("tools", help="List available tools")

    config_parser = subparsers.add_parser("config", help="Show the effective configuration")
    config_parser.add_argument("--json", action="store_true", help="Output as JSON")

    args = parser.parse_args()

    if args.verbose:
        setup_logging("DEBUG")
    else:
        setup_logging("WARNING")

    if args.command == "tools":
        cmd_tools(args)
        return
    if args.command is None:
        parser.print_help()
        return

    try:
        config = _load_config(args.config)
    except ConfigError as e:
        console.print(f"[red]Invalid config: {e}[/red]")
        sys.exit(1)

    if args.command == "serve" and not args.verbose:
        setup_logging(config.log_level)

    if args.command == "serve":
        cmd_serve(args, config)
    elif args.command == "run":
        sys.exit(asyncio.run(cmd_run(args, config)))
    elif args.command == "history":
        cmd_history(args, config)
    elif args.command == "config":
        cmd_config(args, config)


def _load_config(path: str | None) -> OrchestratorConfig:
    if path:
        return OrchestratorConfig.from_yaml(Path(path))
    return OrchestratorConfig.from_env()


def cmd_serve(args: argparse.Namespace, config: OrchestratorConfig) -> None:
    """Run the HTTP API server."""
    from nova_orchestrator.orchestrator import Orchestrator
    from nova_orchestrator.web.server import run_server

    console.print(f"[dim]Serving on http://{args.host}:{args.port}[/dim]")
    run_server(Orchestrator.from_config(config), host=args.host, port=args.port)


def render_event(event: SSEEvent) -> None:
    """Print one run event."""
    data = event.data
    if event.event == MODE:
        console.print(f"[dim]mode:[/dim] {data['mode']}")
    elif event.event == PLAN_READY:
        console.print(f"[bold]Plan:[/bold] {data['intent']} ({data['stepCount']} steps)")
        for step in data.get("steps", []):
            console.print(f"  {step['id']}. {step['description']}")
    elif event.event == STEP_START:
        console.print(f"[cyan]▸ {data['description']}[/cyan]")
    elif event.event == TOOL_CALL:
        console.print(f"  [dim]{data['toolName']} {json.dumps(data['input'])[:120]}[/dim]")
    elif event.event == STEP_COMPLETE:
        if data["status"] == "success":
            console.print("  [green]✓[/green]")
        else:
            console.print(f"  [red]✗ {data.get('error', '')}[/red]")
    elif event.event == VALIDATION_COMPLETE:
        style = "green" if data["passed"] else "yellow"
        console.print(f"[{style}]Validation {'passed' if data['passed'] else 'failed'}[/{style}]")
        for issue in data.get("issues", []):
            console.print(f"  [yellow]- {issue}[/yellow]")
    elif event.event == INSIGHT:
        console.print(f"[magenta]💡 {data['message']}[/magenta]")
    elif event.event == DONE:
        console.print(f"\n{data['response']}")
    elif event.event == ERROR:
        console.print(f"[red]Error: {data['error']}[/red]")


async def cmd_run(args: argparse.Namespace, config: OrchestratorConfig) -> int:
    """Run a prompt, rendering events as they arrive. Returns an exit code."""
    from nova_orchestrator.orchestrator import Orchestrator

    orchestrator = Orchestrator.from_config(config)
    writer = SSEWriter()
    orchestrator.spawn(orchestrator.stream(args.prompt, args.user, args.project, writer))

    exit_code = 0
    try:
        async for frame in writer.stream():
            for event in parse_frames(frame.decode()):
                render_event(event)
                if event.event == ERROR:
                    exit_code = 1
        await orchestrator.drain()
    finally:
        await orchestrator.aclose()
    return exit_code


def cmd_history(args: argparse.Namespace, config: OrchestratorConfig) -> None:
    """Show recent actions."""
    actions = Storage(config.db_path).recent_actions(args.user, args.project, limit=args.limit)

    if args.json:
        console.print_json(json.dumps(actions, indent=2))
        return

    table = Table(title=f"Recent actions ({args.project})")
    table.add_column("When", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Description")
    table.add_column("Status")

    for action in actions:
        table.add_row(
            action["created_at"],
            action["action_type"],
            action["description"][:60],
            action["status"],
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(actions)} actions[/dim]")


def cmd_tools(args: argparse.Namespace) -> None:
    """List available tools."""
    table = Table(title="Available Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Mutating", style="dim")

    tools = create_default_registry().list_tools()
    for tool in tools:
        table.add_row(tool.name, tool.description.splitlines()[0][:70], "yes" if tool.mutating else "")

    console.print(table)
    console.print(f"\n[dim]Total: {len(tools)} tools[/dim]")


def cmd_config(args: argparse.Namespace, config: OrchestratorConfig) -> None:
    """Show the effective configuration, secrets masked."""
    if args.json:
        console.print_json(json.dumps(config.to_dict()))
        return
    console.print("[bold]Current Configuration:[/bold]\n")
    console.print(yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False))


if __name__ == "__main__":
    main()
