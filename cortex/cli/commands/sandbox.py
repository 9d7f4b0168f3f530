"""Sandbox commands for Cortex CLI: run an input spec, replay a recorded run."""

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from cortex.cli.commands.helpers import print_json
from cortex.sandbox import (
    SandboxInput,
    SandboxRunner,
    compare_outputs,
    create_recorded_run,
    load_run,
    restore_state_snapshot,
    save_run,
    validate_input_spec,
)

if TYPE_CHECKING:
    from cortex import Cortex

logger = logging.getLogger(__name__)


def read_input_file(path: str) -> SandboxInput:
    """Load and validate a JSON input spec.

    Raises:
        ValueError: If the file is missing, not JSON, or structurally invalid.
    """
    p = Path(path).expanduser()
    if not p.exists():
        raise ValueError(f"File not found: {p}")
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in file {p}: {e}") from e

    errors = validate_input_spec(data)
    if errors:
        raise ValueError("Invalid input specification: " + "; ".join(errors))
    return SandboxInput.from_dict(data)


def cmd_sandbox(args, c: "Cortex"):
    """Handle sandbox subcommands."""
    if args.sandbox_action == "run":
        spec = read_input_file(args.input)
        output = SandboxRunner(c).run(spec)

        if args.record:
            path = save_run(create_recorded_run(output), args.record)
            logger.info("Recorded run to %s", path)

        print_json(output.to_dict())
        if not output.success:
            sys.exit(1)

    elif args.sandbox_action == "replay":
        recorded = load_run(args.run)
        cortex = restore_state_snapshot(recorded.state_before)
        replayed = SandboxRunner(cortex).run(recorded.input)
        comparison = compare_outputs(recorded.output, replayed)

        if comparison.identical:
            print(f"✓ Replay identical: run {recorded.id}")
            return
        print(f"✗ Replay differs from run {recorded.id} in {len(comparison.differences)} place(s)")
        for d in comparison.differences:
            print(f"  {d.path}: expected {d.expected!r}, got {d.actual!r}")
        sys.exit(1)
