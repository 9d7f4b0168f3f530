"""
Cortex CLI - Command-line interface for the identity, memory and failure engine.

Usage:
    cortex identity create NAME --risk R [--value NAME:PRIORITY:DESC]...
    cortex identity show|history|delete ID
    cortex memory record TYPE CONTENT [--confidence C] [--tag T]...
    cortex memory list [--type T] [--query Q] [--limit N]
    cortex memory reinforce|delete ID
    cortex memory merge KEEP REMOVE
    cortex memory decay|cleanup
    cortex failure record PATTERN --context C --reason R [--severity S]
    cortex failure check TEXT [--context C]
    cortex prepare IDENTITY_ID QUERY [--skip-check] [--json]
    cortex sandbox run INPUT.json [--record OUT.json]
    cortex sandbox replay RUN.json
    cortex mcp
"""

import argparse
import logging
import sys

from cortex import Cortex
from cortex.cli.commands import (
    cmd_failure,
    cmd_identity,
    cmd_memory,
    cmd_prepare,
    cmd_sandbox,
)
from cortex.cli.commands.helpers import parse_invariant, parse_style, parse_value, unit_float
from cortex.config import load_config
from cortex.protocols import CortexError
from cortex.types import VALID_MEMORY_TYPE_VALUES, VALID_RISK_POSTURE_VALUES, VALID_SEVERITY_VALUES

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def cmd_mcp(args):
    """Start MCP server."""
    from cortex.mcp.server import main as mcp_main

    mcp_main(db_path=args.db)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cortex",
        description="Identity, distilled memory and failure policy for agents",
    )
    parser.add_argument("--db", help="SQLite database path (default: $CORTEX_HOME/cortex.db)")
    parser.add_argument(
        "--memory", action="store_true", help="Use throwaway in-memory storage"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # identity
    p_identity = subparsers.add_parser("identity", help="Identity operations")
    id_sub = p_identity.add_subparsers(dest="identity_action", required=True)

    id_create = id_sub.add_parser("create", help="Create an identity")
    id_create.add_argument("name", help="Identity name")
    id_create.add_argument("--risk", "-r", choices=VALID_RISK_POSTURE_VALUES, required=True)
    id_create.add_argument("--value", action="append", type=parse_value,
                           help="NAME:PRIORITY:DESCRIPTION (repeatable)")
    id_create.add_argument("--invariant", action="append", type=parse_invariant,
                           help="RULE::RATIONALE[::DESCRIPTION] (repeatable)")
    id_create.add_argument("--style", action="append", type=parse_style,
                           help="ASPECT:CONSTRAINT (repeatable)")
    id_create.add_argument("--description", "-d", help="Free-text description")
    id_create.add_argument("--json", "-j", action="store_true")

    id_show = id_sub.add_parser("show", help="Show an identity")
    id_show.add_argument("id", help="Identity ID (or unique prefix)")
    id_show.add_argument("--json", "-j", action="store_true")

    id_history = id_sub.add_parser("history", help="Show version history")
    id_history.add_argument("id", help="Identity ID (or unique prefix)")
    id_history.add_argument("--json", "-j", action="store_true")

    id_sub.add_parser("list", help="List identities")

    id_update = id_sub.add_parser("update", help="Create the next identity version")
    id_update.add_argument("id", help="Identity ID (or unique prefix)")
    id_update.add_argument("--reason", required=True, help="Why this change is being made")
    id_update.add_argument("--risk", choices=VALID_RISK_POSTURE_VALUES)
    id_update.add_argument("--value", action="append", type=parse_value,
                           help="Replace values (repeatable)")
    id_update.add_argument("--invariant", action="append", type=parse_invariant,
                           help="Replace invariants (repeatable)")
    id_update.add_argument("--style", action="append", type=parse_style,
                           help="Replace style constraints (repeatable)")
    id_update.add_argument("--description", "-d")

    id_delete = id_sub.add_parser("delete", help="Delete an identity and its history")
    id_delete.add_argument("id", help="Identity ID (or unique prefix)")

    # memory
    p_memory = subparsers.add_parser("memory", help="Distilled memory operations")
    mem_sub = p_memory.add_subparsers(dest="memory_action", required=True)

    mem_record = mem_sub.add_parser("record", help="Record (or reinforce) a memory")
    mem_record.add_argument("type", choices=VALID_MEMORY_TYPE_VALUES)
    mem_record.add_argument("content", help="The distilled statement")
    mem_record.add_argument("--confidence", "-c", type=unit_float)
    mem_record.add_argument("--tag", "-t", action="append", help="Tag (repeatable)")
    mem_record.add_argument("--source", "-s", help="Where this was learned")

    mem_list = mem_sub.add_parser("list", help="List or search memories")
    mem_list.add_argument("--type", choices=VALID_MEMORY_TYPE_VALUES)
    mem_list.add_argument("--tag", "-t", action="append", help="Required tag (repeatable)")
    mem_list.add_argument("--min-confidence", type=unit_float)
    mem_list.add_argument("--query", "-q", help="Semantic query")
    mem_list.add_argument("--limit", "-l", type=int)
    mem_list.add_argument("--json", "-j", action="store_true")

    mem_reinforce = mem_sub.add_parser("reinforce", help="Reinforce a memory")
    mem_reinforce.add_argument("id", help="Memory ID (or unique prefix)")

    mem_merge = mem_sub.add_parser("merge", help="Merge one memory into another")
    mem_merge.add_argument("keep", help="Memory ID to keep")
    mem_merge.add_argument("remove", help="Memory ID to fold in and delete")

    mem_sub.add_parser("decay", help="Apply time-based decay")
    mem_sub.add_parser("cleanup", help="Delete weak or stale memories")

    mem_delete = mem_sub.add_parser("delete", help="Delete a memory")
    mem_delete.add_argument("id", help="Memory ID (or unique prefix)")

    # failure
    p_failure = subparsers.add_parser("failure", help="Failure pattern operations")
    fail_sub = p_failure.add_subparsers(dest="failure_action", required=True)

    fail_record = fail_sub.add_parser("record", help="Record a failure occurrence")
    fail_record.add_argument("pattern", help="What went wrong")
    fail_record.add_argument("--context", "-c", required=True, help="Where it went wrong")
    fail_record.add_argument("--reason", "-r", required=True, help="Why it is a failure")
    fail_record.add_argument("--severity", "-s", choices=VALID_SEVERITY_VALUES,
                             help="hard blocks, soft biases (default: soft)")
    fail_record.add_argument("--tag", "-t", action="append", help="Tag (repeatable)")

    fail_check = fail_sub.add_parser("check", help="Check text against failure patterns")
    fail_check.add_argument("text")
    fail_check.add_argument("--context", "-c")
    fail_check.add_argument("--json", "-j", action="store_true")

    fail_list = fail_sub.add_parser("list", help="List failure patterns")
    fail_list.add_argument("--severity", "-s", choices=VALID_SEVERITY_VALUES)
    fail_list.add_argument("--tag", "-t", action="append")
    state = fail_list.add_mutually_exclusive_group()
    state.add_argument("--active", action="store_true", help="Only active patterns")
    state.add_argument("--inactive", action="store_true", help="Only inactive patterns")
    fail_list.add_argument("--query", "-q", help="Semantic query")
    fail_list.add_argument("--limit", "-l", type=int)
    fail_list.add_argument("--json", "-j", action="store_true")

    for action, help_text in (
        ("activate", "Re-enable a failure pattern"),
        ("deactivate", "Disable a failure pattern without deleting it"),
        ("delete", "Delete a failure pattern"),
    ):
        p = fail_sub.add_parser(action, help=help_text)
        p.add_argument("id", help="Pattern ID (or unique prefix)")

    # prepare
    p_prepare = subparsers.add_parser("prepare", help="Run the context preparation pipeline")
    p_prepare.add_argument("identity_id")
    p_prepare.add_argument("query")
    p_prepare.add_argument("--context", "-c", help="Additional context for blocking checks")
    p_prepare.add_argument("--limit", "-l", type=int, help="Memories per type")
    p_prepare.add_argument("--min-confidence", type=unit_float)
    p_prepare.add_argument("--threshold", type=unit_float, help="Memory similarity threshold")
    p_prepare.add_argument("--block-threshold", type=unit_float,
                           help="Failure blocking threshold override")
    p_prepare.add_argument("--skip-check", action="store_true",
                           help="Report failure matches without blocking")
    p_prepare.add_argument("--json", "-j", action="store_true")

    # sandbox
    p_sandbox = subparsers.add_parser("sandbox", help="Sandbox runs and replay")
    sb_sub = p_sandbox.add_subparsers(dest="sandbox_action", required=True)
    sb_run = sb_sub.add_parser("run", help="Run an input spec against current state")
    sb_run.add_argument("input", help="JSON input spec")
    sb_run.add_argument("--record", help="Save the run to this file")
    sb_replay = sb_sub.add_parser("replay", help="Replay a recorded run and compare")
    sb_replay.add_argument("run", help="Recorded run JSON file")

    # mcp
    subparsers.add_parser("mcp", help="Start MCP server (stdio transport)")

    return parser


def _configure_logging(args, level_name: str) -> None:
    if args.verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(level_name.upper())
        if not isinstance(level, int):
            logger.warning("Unknown log level %r, using WARNING", level_name)
            level = logging.WARNING
    logging.getLogger().setLevel(level)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    _configure_logging(args, config.log_level)

    if args.command == "mcp":
        cmd_mcp(args)
        return

    # Initialize Cortex with error handling
    try:
        if args.memory:
            c = Cortex.create(config=config)
        else:
            c = Cortex.create_with_sqlite(args.db, config=config)
    except (ValueError, TypeError, OSError) as e:
        logger.error(f"Failed to initialize Cortex: {e}")
        sys.exit(1)

    # Dispatch with error handling
    try:
        if args.command == "identity":
            cmd_identity(args, c)
        elif args.command == "memory":
            cmd_memory(args, c)
        elif args.command == "failure":
            cmd_failure(args, c)
        elif args.command == "prepare":
            cmd_prepare(args, c)
        elif args.command == "sandbox":
            cmd_sandbox(args, c)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    except CortexError as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
