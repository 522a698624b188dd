"""Quality search: find the highest quality whose output fits a size budget.

The search is a pure function of the image, the settings, the encoder and the
policy. It is shared by the batch workers and the interactive API, which only
differ in the ``SearchPolicy`` they pass.

Encoded size is assumed to be non-decreasing in quality. ``min_quality`` is a
hard floor; the target size is advisory once the floor is reached.
"""
import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Optional

from webpbatch.conversion.encoder import encode_image
from webpbatch.conversion.models import BATCH_POLICY, KB, SearchPolicy, Settings

logger = logging.getLogger("webpbatch.search")

Encoder = Callable[[Any, int], bytes]


@dataclass(frozen=True)
class SearchResult:
    data: bytes
    quality: int
    iterations: int = 0

    @property
    def size_kb(self) -> float:
        return len(self.data) / KB


def search(
    image: Any,
    settings: Settings,
    encode: Optional[Encoder] = None,
    policy: SearchPolicy = BATCH_POLICY,
) -> SearchResult:
    """Encode ``image`` at the best quality in [min_quality, quality] for the target size.

    Without a target size this is a single encode at ``settings.quality``.
    Exceptions raised by ``encode`` propagate.
    """
    if encode is None:
        encode = partial(encode_image, output_format=settings.output_format)
    target = settings.target_size_kb

    data = encode(image, settings.quality)
    if target is None:
        return SearchResult(data, settings.quality)

    size_kb = len(data) / KB
    if size_kb <= target or settings.quality <= settings.min_quality:
        return SearchResult(data, settings.quality)

    low, high = settings.min_quality, settings.quality
    best: Optional[SearchResult] = None
    iterations = 0
    while iterations < policy.max_iterations:
        # Closeness only counts once something under the target is in hand.
        if best is not None and policy.size_epsilon_kb is not None and abs(size_kb - target) < policy.size_epsilon_kb:
            break
        if high - low <= policy.quality_epsilon:
            break
        mid = (low + high) // 2
        data = encode(image, mid)
        size_kb = len(data) / KB
        iterations += 1
        if size_kb > target:
            high = mid
        else:
            low = mid
            best = SearchResult(data, mid, iterations)
        logger.debug("Search step %s: quality=%s size=%.2fKB window=[%s, %s]", iterations, mid, size_kb, low, high)

    if best is not None:
        return SearchResult(best.data, best.quality, iterations)

    # Nothing tried met the target (the floor itself is never a midpoint).
    data = encode(image, settings.min_quality)
    logger.debug(
        "Target %.2fKB not reached above the floor; using min quality %s (%.2fKB)",
        target, settings.min_quality, len(data) / KB,
    )
    return SearchResult(data, settings.min_quality, iterations)
