"""Save and load sandbox runs for replay."""

import json
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Union

from cortex.sandbox.runner import SandboxInput, SandboxOutput
from cortex.sandbox.snapshot import StateSnapshot
from cortex.types import utc_now

logger = logging.getLogger(__name__)


@dataclass
class RecordedRun:
    id: str
    timestamp: str
    input: SandboxInput
    state_before: StateSnapshot
    output: SandboxOutput

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "input": self.input.to_dict(),
            "state_before": self.state_before.to_dict(),
            "output": self.output.to_dict(),
        }


def create_recorded_run(output: SandboxOutput) -> RecordedRun:
    return RecordedRun(
        id=str(uuid.uuid4()),
        timestamp=utc_now().isoformat(),
        input=output.input,
        state_before=output.state_before,
        output=output,
    )


def save_run(run: RecordedRun, path: Union[str, Path]) -> Path:
    """Write a run as indented JSON, creating parent directories."""
    path = Path(path).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(run.to_dict(), indent=2), encoding="utf-8")
    logger.debug("Saved run %s to %s", run.id, path)
    return path


def load_run(path: Union[str, Path]) -> RecordedRun:
    """Read and structurally validate a recorded run.

    Raises:
        ValueError: If the file is missing, not JSON, or lacks required sections.
    """
    path = Path(path).expanduser().resolve()
    if not path.exists():
        raise ValueError(f"Run file not found: {path}")

    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid run file: not valid JSON ({e})") from e

    if not isinstance(parsed, dict):
        raise ValueError("Invalid run file: not an object")
    for key in ("id", "timestamp"):
        if not isinstance(parsed.get(key), str):
            raise ValueError(f"Invalid run file: missing {key}")
    for key in ("input", "output", "state_before"):
        if not isinstance(parsed.get(key), dict):
            raise ValueError(f"Invalid run file: missing {key}")

    try:
        return RecordedRun(
            id=parsed["id"],
            timestamp=parsed["timestamp"],
            input=SandboxInput.from_dict(parsed["input"]),
            state_before=StateSnapshot.from_dict(parsed["state_before"]),
            output=SandboxOutput.from_dict(parsed["output"]),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid run file: {e}") from e
