"""Reduce raw per-segment emotion predictions to a ranked summary.

Input shape::

    [                                   # result sets
        {"results": [                   # segments
            {"emotions": [{"name": "Joy", "score": 0.8}, ...]},
            ...
        ]},
        ...
    ]

Every segment carrying a non-empty ``emotions`` list is a *qualifying*
segment. Each emotion's scores are summed across qualifying segments and
divided by the number of qualifying segments (one shared denominator), so
an emotion that appears in fewer segments is proportionally down-weighted.
"""

import logging
import math
from collections.abc import Mapping, Sequence

from punchline.core.exceptions import AggregationFailed
from punchline.core.models import EmotionScore, ProcessedEmotions

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 3


def _is_sequence(value) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _accumulate(raw) -> tuple[dict[str, float], int]:
    """Sum scores per emotion name and count qualifying segments.

    Raises:
        AggregationFailed: If any level of the structure has the wrong shape.
    """
    if not _is_sequence(raw) or len(raw) == 0:
        raise AggregationFailed("expected a non-empty list of result sets")

    sums: dict[str, float] = {}
    segments_count = 0

    for set_index, result_set in enumerate(raw):
        if not isinstance(result_set, Mapping):
            raise AggregationFailed(f"result set {set_index} is not an object")
        segments = result_set.get("results")
        if not _is_sequence(segments):
            raise AggregationFailed(f"result set {set_index} has no segment list")

        for segment in segments:
            if not isinstance(segment, Mapping):
                raise AggregationFailed(f"result set {set_index} has a non-object segment")
            emotions = segment.get("emotions")
            if not _is_sequence(emotions) or len(emotions) == 0:
                continue

            segments_count += 1
            for emotion in emotions:
                name, score = _parse_emotion(emotion)
                sums[name] = sums.get(name, 0.0) + score

    return sums, segments_count


def _parse_emotion(emotion) -> tuple[str, float]:
    if not isinstance(emotion, Mapping):
        raise AggregationFailed("emotion entry is not an object")
    name = emotion.get("name")
    score = emotion.get("score")
    if not isinstance(name, str) or not name:
        raise AggregationFailed("emotion entry has no name")
    # bool is an int subclass; reject it explicitly
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
        raise AggregationFailed(f"emotion {name!r} has a non-numeric score")
    return name, float(score)


def aggregate(raw, top_n: int = DEFAULT_TOP_N) -> ProcessedEmotions:
    """Aggregate raw emotion predictions into the top ``top_n`` emotions.

    Never raises: malformed input or zero qualifying segments produce an
    empty ``ProcessedEmotions``.

    Args:
        raw: Nested result-set / segment / emotion structure.
        top_n: Maximum number of emotions to keep.

    Returns:
        ProcessedEmotions sorted by mean score, highest first. Ties keep
        the order in which names were first encountered.
    """
    try:
        sums, segments_count = _accumulate(raw)
    except AggregationFailed as exc:
        logger.warning("Emotion aggregation skipped: %s", exc.detail)
        return ProcessedEmotions.empty()
    except Exception:
        logger.exception("Unexpected error while aggregating emotions")
        return ProcessedEmotions.empty()

    if segments_count == 0:
        logger.info("No segment carried emotion data")
        return ProcessedEmotions.empty()

    means = [(name, total / segments_count) for name, total in sums.items()]
    # sorted() is stable with reverse=True, so ties keep first-seen order
    ranked = sorted(means, key=lambda item: item[1], reverse=True)

    top = [EmotionScore(name=name, score=score) for name, score in ranked[: max(top_n, 0)]]
    logger.debug("Aggregated %d segments into %s", segments_count, [e.name for e in top])
    return ProcessedEmotions(top_emotions=top)
