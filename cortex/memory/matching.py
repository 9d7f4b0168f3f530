"""Find-or-create over a record collection.

Both memory services deduplicate writes the same way: score the new text
against every existing record, strengthen the closest match when it clears
the duplicate threshold, otherwise create a fresh record.
"""

import logging
from typing import Callable, Optional, Sequence, Tuple, TypeVar

from cortex.protocols import SimilarityProvider
from cortex.types import RecordAction, RecordOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


def find_most_similar(
    text: str,
    records: Sequence[T],
    text_of: Callable[[T], str],
    similarity: SimilarityProvider,
    threshold: float,
) -> Optional[Tuple[T, float]]:
    """Return the best-scoring record at or above threshold, with its score.

    Ties resolve to the record that comes first in ``records``.
    """
    if not records:
        return None
    matches = similarity.rank(text, [text_of(r) for r in records], threshold)
    if not matches:
        return None
    best = matches[0]
    return records[best.index], best.score


def find_or_create(
    text: str,
    records: Sequence[T],
    text_of: Callable[[T], str],
    similarity: SimilarityProvider,
    threshold: float,
    on_match: Callable[[T], T],
    on_create: Callable[[], T],
) -> RecordOutcome:
    """Strengthen the closest existing record or create a new one.

    Args:
        text: Text of the incoming observation.
        records: Existing records, in storage order.
        text_of: Extracts the comparable text from a record.
        similarity: Scoring capability.
        threshold: Minimum score for a record to count as a duplicate.
        on_match: Called with the matched record; returns the updated record.
        on_create: Called when nothing matched; returns the new record.
    """
    found = find_most_similar(text, records, text_of, similarity, threshold)
    if found is None:
        return RecordOutcome(action=RecordAction.CREATED, record=on_create())

    record, score = found
    logger.debug("Duplicate match (score=%.3f) for %r", score, text[:60])
    return RecordOutcome(action=RecordAction.REINFORCED, record=on_match(record), similarity=score)
