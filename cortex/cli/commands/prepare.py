"""The prepare command: run the context pipeline from the shell.

Exit status: 0 on success, 2 when blocked, 1 on error.
"""

import logging
import sys
from typing import TYPE_CHECKING

from cortex.cli.commands.helpers import print_json, validate_input
from cortex.engine import FailureOptions, MemoryOptions, PrepareContextInput

if TYPE_CHECKING:
    from cortex import Cortex

logger = logging.getLogger(__name__)

EXIT_BLOCKED = 2


def cmd_prepare(args, c: "Cortex"):
    """Prepare context for a query and print the decision."""
    result = c.prepare_context(
        PrepareContextInput(
            identity_id=args.identity_id,
            query=validate_input(args.query, "query", 4000),
            context=validate_input(args.context, "context", 4000) if args.context else None,
            memory_options=MemoryOptions(
                limit_per_type=args.limit,
                min_confidence=args.min_confidence,
                similarity_threshold=args.threshold,
            ),
            failure_options=FailureOptions(
                skip_check=args.skip_check,
                similarity_threshold=getattr(args, "block_threshold", None),
            ),
        )
    )

    if result.blocked:
        if args.json:
            print_json(
                {
                    "success": False,
                    "blocked": True,
                    "reason": result.reason,
                    "matched_patterns": result.matched_patterns,
                }
            )
        else:
            print(f"✗ BLOCKED: {result.reason}")
            for p in result.matched_patterns:
                print(f"  [{p.severity.value}] {p.pattern} (x{p.occurrence_count})")
        sys.exit(EXIT_BLOCKED)

    if not result.success:
        logger.error(result.error)
        sys.exit(1)

    ctx = result.context
    if args.json:
        print_json(
            {
                "success": True,
                "identity": ctx.identity_context,
                "memories": ctx.memory_context,
                "failures": ctx.failure_context,
                "prepared_at": ctx.prepared_at,
            }
        )
        return

    ic = ctx.identity_context
    print(f"## {ic.name} ({ic.risk_posture})")
    for v in ic.values:
        print(f"  [{v.priority}] {v.name}: {v.description}")
    for inv in ic.invariants:
        print(f"  ! {inv.rule}")
    for sc in ic.style_constraints:
        print(f"  ~ {sc.aspect}: {sc.constraint}")

    for title, items in (
        ("Lessons", ctx.memory_context.lessons),
        ("Preferences", ctx.memory_context.preferences),
        ("Warnings", ctx.memory_context.warnings),
    ):
        if items:
            print(f"\n## {title}")
            for item in items:
                print(f"  - {item.content} ({item.confidence:.2f})")

    soft = ctx.failure_context.soft_blocks
    if soft:
        print("\n## Soft blocks")
        for b in soft:
            print(f"  - {b.pattern}: {b.reason} (x{b.occurrence_count})")
