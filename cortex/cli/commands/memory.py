"""Distilled memory commands for Cortex CLI."""

import logging
from typing import TYPE_CHECKING

from cortex.cli.commands.helpers import print_json, resolve_id, validate_input
from cortex.types import MemoryInput, MemoryQuery, MemoryType

if TYPE_CHECKING:
    from cortex import Cortex

logger = logging.getLogger(__name__)


def _memory_id(c: "Cortex", partial: str) -> str:
    return resolve_id(partial, [m.id for m in c.memory.list_all()], "Memory")


def cmd_memory(args, c: "Cortex"):
    """Handle memory subcommands."""
    action = args.memory_action

    if action == "record":
        outcome = c.memory.record_outcome(
            MemoryInput(
                memory_type=MemoryType(args.type),
                content=validate_input(args.content, "content", 2000),
                confidence=args.confidence,
                tags=[validate_input(t, "tag", 100) for t in (args.tag or [])],
                source_context=(
                    validate_input(args.source, "source", 1000) if args.source else None
                ),
            )
        )
        memory = outcome.record
        if outcome.created:
            print(f"✓ Memory recorded: {memory.id}")
        else:
            print(f"✓ Reinforced existing memory: {memory.id} (similarity {outcome.similarity:.2f})")
        print(f"  [{memory.memory_type.value}] {memory.content}")
        print(f"  Confidence: {memory.confidence:.2f}")

    elif action == "list":
        result = c.memory.retrieve(
            MemoryQuery(
                memory_type=MemoryType(args.type) if args.type else None,
                tags=args.tag or None,
                min_confidence=args.min_confidence,
                limit=args.limit,
                semantic_query=args.query,
            )
        )
        if args.json:
            print_json(result)
            return
        if not result.memories:
            print("No memories found.")
            return
        for m in result.memories:
            tags = f"  #{' #'.join(m.tags)}" if m.tags else ""
            print(
                f"{m.id[:8]}  [{m.memory_type.value}] {m.content}"
                f"  (conf {m.confidence:.2f}, decay {m.decay_factor:.2f}){tags}"
            )
        if result.total_count > len(result.memories):
            print(f"... {result.total_count - len(result.memories)} more")

    elif action == "reinforce":
        result = c.memory.reinforce(_memory_id(c, args.id))
        print(f"✓ Reinforced: {result.memory.id[:8]}...")
        print(f"  Confidence: {result.previous_confidence:.2f} -> {result.new_confidence:.2f}")

    elif action == "merge":
        keep_id = _memory_id(c, args.keep)
        remove_id = _memory_id(c, args.remove)
        result = c.memory.merge(keep_id, remove_id)
        print(f"✓ Merged {remove_id[:8]}... into {keep_id[:8]}...")
        print(f"  Similarity: {result.similarity_score:.2f}")
        print(f"  Confidence: {result.merged.confidence:.2f}")

    elif action == "decay":
        count = c.memory.apply_decay()
        print(f"✓ Decay applied to {count} memories")

    elif action == "cleanup":
        deleted = c.memory.cleanup()
        print(f"✓ Cleaned up {len(deleted)} memories")
        for memory_id in deleted:
            print(f"  - {memory_id}")

    elif action == "delete":
        memory_id = _memory_id(c, args.id)
        c.memory.delete(memory_id)
        print(f"✓ Memory deleted: {memory_id}")
