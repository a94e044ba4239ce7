#!/usr/bin/env python3
"""
ElevenLabs CLI
==============

Command-line client for the ElevenLabs API, and an MCP tool server that
exposes the same operations to AI agents.

Usage:
    elevenlabs tts "Hello world" --voice <voice_id>    # Text to speech
    elevenlabs stt recording.mp3                      # Speech to text
    elevenlabs voices list                            # List voices
    elevenlabs call list_history --args '{"limit": 5}' # Any operation
    elevenlabs tools --read-only                      # What an agent would see
    elevenlabs mcp --disable-destructive              # Serve tools on stdio
    elevenlabs config set api_key <key>               # Persist settings

Every command goes through the same Dispatcher the tool server uses.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import argparse
import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from elevenlabs_cli import __version__
from elevenlabs_cli.api.client import APIConfig, ElevenLabsClient
from elevenlabs_cli.api.rate_limiter import RateLimiter
from elevenlabs_cli.api.retry import ResilientCaller
from elevenlabs_cli.core.errors import ErrorHandler
from elevenlabs_cli.infra.config import AppConfig, ConfigError, ConfigManager, build_policy_config, known_keys
from elevenlabs_cli.infra.logging import RequestContext, configure_logging
from elevenlabs_cli.infra.server import ToolServer
from elevenlabs_cli.tools.catalog import build_default_catalog
from elevenlabs_cli.tools.dispatcher import Dispatcher, DispatchResult, Invocation
from elevenlabs_cli.tools.policy import PolicyConfig, PolicyEngine, evaluate

# stdout carries command output (and protocol traffic in mcp mode)
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("elevenlabs.main")


def build_dispatcher(config: AppConfig, policy_config: Optional[PolicyConfig] = None) -> Dispatcher:
    """Wire catalog, policy, retry layer and API client for one session."""
    catalog = build_default_catalog()
    policy = PolicyEngine(policy_config or PolicyConfig(), catalog)
    client = ElevenLabsClient(
        APIConfig(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
        ),
        rate_limiter=RateLimiter(),
    )
    caller = ResilientCaller(config.retry.to_retry_config())
    return Dispatcher(catalog, policy, caller, client)


def _policy_from_args(config: AppConfig, args: argparse.Namespace) -> PolicyConfig:
    return build_policy_config(
        config.mcp,
        enable_tools=args.enable_tools,
        disable_tools=args.disable_tools,
        disable_admin=args.disable_admin,
        disable_destructive=args.disable_destructive,
        read_only=args.read_only,
    )


# Rendering

def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def print_error(result: DispatchResult, as_json: bool) -> None:
    if as_json:
        print_json(result.to_message())
        return
    message = ErrorHandler().handle(result.error)
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def _table(title: str, columns: List[str], rows: List[List[Any]]) -> Table:
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*["" if v is None else str(v) for v in row])
    return table


def render(result: DispatchResult, as_json: bool) -> int:
    """Print a dispatch outcome; returns the exit code."""
    if not result.success:
        print_error(result, as_json)
        return 1

    payload = result.payload
    if as_json:
        print_json(payload)
        return 0

    if result.operation == "list_voices" and isinstance(payload, dict):
        rows = [[v.get("voice_id"), v.get("name"), v.get("category")] for v in payload.get("voices", [])]
        console.print(_table("Voices", ["Voice ID", "Name", "Category"], rows))
    elif result.operation == "list_models" and isinstance(payload, list):
        rows = [[m.get("model_id"), m.get("name"), len(m.get("languages") or [])] for m in payload]
        console.print(_table("Models", ["Model ID", "Name", "Languages"], rows))
    elif result.operation == "list_history" and isinstance(payload, dict):
        rows = [
            [h.get("history_item_id"), h.get("voice_name"), (h.get("text") or "")[:60]]
            for h in payload.get("history", [])
        ]
        console.print(_table("History", ["Item ID", "Voice", "Text"], rows))
    elif result.operation == "speech_to_text" and isinstance(payload, dict) and "text" in payload:
        console.print(payload["text"])
    elif isinstance(payload, dict) and "output_file" in payload:
        console.print(f"[green]Saved {payload['bytes']} bytes to {payload['output_file']}[/green]")
    else:
        console.print_json(data=payload, default=str)
    return 0


# Commands

def run_call(dispatcher: Dispatcher, name: str, arguments: Dict[str, Any], as_json: bool) -> int:
    """Dispatch one operation, render the outcome and close the API client."""
    try:
        with RequestContext():
            result = dispatcher.dispatch(Invocation(name, arguments))
    finally:
        dispatcher.client.close()
    return render(result, as_json)


def cmd_call(args, config: AppConfig) -> int:
    try:
        arguments = json.loads(args.args) if args.args else {}
    except json.JSONDecodeError as e:
        err_console.print(f"[bold red]Error:[/bold red] --args is not valid JSON: {e}")
        return 1
    if not isinstance(arguments, dict):
        err_console.print("[bold red]Error:[/bold red] --args must be a JSON object")
        return 1
    return run_call(build_dispatcher(config), args.operation, arguments, args.json)


def cmd_tts(args, config: AppConfig) -> int:
    voice = args.voice or config.default_voice
    if not voice:
        err_console.print(
            "[bold red]Error:[/bold red] No voice given. Pass --voice or run "
            "'elevenlabs config set default_voice <voice_id>'"
        )
        return 1
    output_format = args.format or config.default_output_format
    output = args.output or f"speech.{output_format.split('_')[0]}"
    arguments = {
        "text": args.text,
        "voice": voice,
        "model": args.model or config.default_model,
        "output_format": output_format,
        "output_file": output,
    }
    for name in ("stability", "similarity_boost", "style"):
        value = getattr(args, name)
        if value is not None:
            arguments[name] = value
    return run_call(build_dispatcher(config), "text_to_speech", arguments, args.json)


def cmd_stt(args, config: AppConfig) -> int:
    arguments: Dict[str, Any] = {"file": args.file}
    if args.language:
        arguments["language"] = args.language
    if args.diarize:
        arguments["diarize"] = True
    return run_call(build_dispatcher(config), "speech_to_text", arguments, args.json)


def cmd_voices(args, config: AppConfig) -> int:
    dispatcher = build_dispatcher(config)
    if args.voices_command == "get":
        return run_call(dispatcher, "get_voice", {"voice_id": args.voice_id}, args.json)
    if args.voices_command == "delete":
        return run_call(dispatcher, "delete_voice", {"voice_id": args.voice_id}, args.json)
    return run_call(dispatcher, "list_voices", {}, args.json)


def cmd_history(args, config: AppConfig) -> int:
    return run_call(build_dispatcher(config), "list_history", {"limit": args.limit}, args.json)


def cmd_simple(operation: str):
    def command(args, config: AppConfig) -> int:
        return run_call(build_dispatcher(config), operation, {}, args.json)
    return command


def cmd_tools(args, config: AppConfig) -> int:
    policy_config = _policy_from_args(config, args)
    catalog = build_default_catalog()
    decisions = [(d, evaluate(d.name, d.category, policy_config)) for d in catalog]

    if args.json:
        print_json([
            {
                "name": d.name,
                "category": d.category.value,
                "group": d.group,
                "idempotent": d.idempotent,
                "allowed": decision.allowed,
                "rule": decision.rule.value,
            }
            for d, decision in decisions
        ])
        return 0

    table = Table(title=f"Operations ({policy_config.describe()})")
    for column in ("Name", "Category", "Group", "Allowed"):
        table.add_column(column)
    for d, decision in decisions:
        allowed = "[green]yes[/green]" if decision.allowed else f"[red]no[/red] [dim]({decision.rule.value})[/dim]"
        table.add_row(d.name, d.category.value, d.group, allowed)
    console.print(table)
    allowed_count = sum(1 for _, decision in decisions if decision.allowed)
    console.print(f"[dim]{allowed_count}/{len(decisions)} operations allowed[/dim]")
    return 0


def cmd_mcp(args, config: AppConfig) -> int:
    policy_config = _policy_from_args(config, args)
    dispatcher = build_dispatcher(config, policy_config)
    if not config.api_key:
        logger.warning("No API key configured; every call will fail until one is set")

    server = ToolServer(dispatcher, max_workers=args.max_workers or config.mcp.max_workers)
    server.install_signal_handlers()
    try:
        server.serve()
    finally:
        dispatcher.client.close()
    return 0


def cmd_config(args, manager: ConfigManager) -> int:
    command = args.config_command or "show"
    if command == "path":
        console.print(str(manager.path))
        return 0
    if command == "set":
        manager.set(args.key, args.value)
        console.print(f"[green]Set {args.key}[/green]")
        return 0
    if command == "unset":
        manager.unset(args.key)
        console.print(f"[green]Unset {args.key}[/green]")
        return 0

    data = manager.effective().masked()
    if args.json:
        print_json(data)
    else:
        console.print(f"[dim]{manager.path}[/dim]")
        console.print_json(data=data)
    return 0


# Argument parsing

def _add_policy_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("tool policy")
    group.add_argument("--enable-tools", metavar="NAMES",
                       help="Comma-separated allow-list of operations")
    group.add_argument("--disable-tools", metavar="NAMES",
                       help="Comma-separated operations to deny")
    group.add_argument("--disable-admin", action="store_true",
                       help="Deny operations that create, modify or delete resources")
    group.add_argument("--disable-destructive", action="store_true",
                       help="Deny operations that delete resources")
    group.add_argument("--read-only", action="store_true",
                       help="Only allow reads and generation")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="elevenlabs",
        description="ElevenLabs CLI and MCP tool server",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--api-key", help="API key (overrides ELEVENLABS_API_KEY and the config file)")
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--json", action="store_true", help="Print raw JSON output")
    parser.add_argument(
        "--log-level", "-l",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (logs go to stderr)",
    )
    parser.add_argument("--log-file", help="Also write JSON logs to this file")

    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    mcp = sub.add_parser("mcp", help="Run the MCP tool server on stdio")
    _add_policy_flags(mcp)
    mcp.add_argument("--max-workers", type=int, help="Concurrent tool calls (1 = sequential)")

    tools = sub.add_parser("tools", help="List operations and whether the policy allows them")
    _add_policy_flags(tools)

    call = sub.add_parser("call", help="Run any operation by name")
    call.add_argument("operation", help="Operation name (see 'elevenlabs tools')")
    call.add_argument("--args", "-a", help="Arguments as a JSON object")

    tts = sub.add_parser("tts", help="Convert text to speech")
    tts.add_argument("text", help="Text to speak")
    tts.add_argument("--voice", "-v", help="Voice ID")
    tts.add_argument("--model", "-m", help="Model ID")
    tts.add_argument("--format", "-f", help="Output format, e.g. mp3_44100_128")
    tts.add_argument("--output", "-o", help="Output file")
    tts.add_argument("--stability", type=float)
    tts.add_argument("--similarity-boost", dest="similarity_boost", type=float)
    tts.add_argument("--style", type=float)

    stt = sub.add_parser("stt", help="Transcribe an audio file")
    stt.add_argument("file", help="Audio file")
    stt.add_argument("--language", help="ISO language code")
    stt.add_argument("--diarize", action="store_true", help="Identify speakers")

    voices = sub.add_parser("voices", help="Manage voices")
    voices_sub = voices.add_subparsers(dest="voices_command", metavar="<action>")
    voices_sub.add_parser("list", help="List voices")
    for action in ("get", "delete"):
        p = voices_sub.add_parser(action, help=f"{action.capitalize()} a voice")
        p.add_argument("voice_id")

    history = sub.add_parser("history", help="List generation history")
    history.add_argument("--limit", type=int, default=10)

    sub.add_parser("user", help="Show account and subscription")
    sub.add_parser("models", help="List models")

    config = sub.add_parser("config", help="Show or change configuration")
    config_sub = config.add_subparsers(dest="config_command", metavar="<action>")
    config_sub.add_parser("show", help="Show effective configuration")
    config_sub.add_parser("path", help="Print the config file location")
    set_parser = config_sub.add_parser("set", help="Set a value")
    set_parser.add_argument("key", choices=known_keys(), metavar="key")
    set_parser.add_argument("value")
    unset_parser = config_sub.add_parser("unset", help="Reset a value to its default")
    unset_parser.add_argument("key", choices=known_keys(), metavar="key")

    return parser


COMMANDS = {
    "mcp": cmd_mcp,
    "tools": cmd_tools,
    "call": cmd_call,
    "tts": cmd_tts,
    "stt": cmd_stt,
    "voices": cmd_voices,
    "history": cmd_history,
    "user": cmd_simple("get_user_info"),
    "models": cmd_simple("list_models"),
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        configure_logging(args.log_level, log_file=args.log_file)
    except (OSError, ValueError) as e:
        err_console.print(f"[bold red]Error:[/bold red] Could not set up logging: {e}")
        return 1

    manager = ConfigManager(Path(args.config) if args.config else None)
    try:
        if args.command == "config":
            return cmd_config(args, manager)
        config = manager.effective(api_key=args.api_key)
        return COMMANDS[args.command](args, config)

    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    except ConfigError as e:
        err_console.print(f"[bold red]Config error:[/bold red] {e}")
        return 1
    except Exception as e:
        logger.exception("Fatal error")
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
