"""Reconstruct manga reading order from classified text regions."""

import logging
import re
from dataclasses import replace
from functools import cmp_to_key
from numbers import Real

from manga_narrator.constants import PANEL_GAP_TOLERANCE, SAME_ROW_TOLERANCE, SFX_MAX_LENGTH
from manga_narrator.models import TextRegion, NARRATION, DIALOGUE

logger = logging.getLogger(__name__)

# Hiragana, katakana and CJK unified ideographs
_SFX_RE = re.compile(rf"^[\u3040-\u30FF\u4E00-\u9FAF]{{1,{SFX_MAX_LENGTH}}}$")

# "!?", "!!!", "？！"
_PUNCT_NOISE_RE = re.compile(r"^[!?！？]+$")


def _valid_box(box) -> bool:
    """Four real numbers with yMin <= yMax and xMin <= xMax."""
    if not isinstance(box, (list, tuple)) or len(box) != 4:
        return False
    if not all(isinstance(v, Real) and not isinstance(v, bool) for v in box):
        return False
    y_min, x_min, y_max, x_max = box
    return y_min <= y_max and x_min <= x_max


def is_narratable(text: str | None) -> bool:
    """False for empty text, pure !/? noise and short CJK sound effects."""
    if not text:
        return False
    stripped = text.strip()
    if not stripped:
        return False
    if _PUNCT_NOISE_RE.match(stripped):
        return False
    if _SFX_RE.match(stripped):
        return False
    return True


def _filter_regions(regions: list[TextRegion]) -> list[TextRegion]:
    return [r for r in regions if _valid_box(r.box) and is_narratable(r.text)]


def _assign_roles(regions: list[TextRegion]) -> list[TextRegion]:
    """Narrator character type reads as narration; everything else is dialogue."""
    return [
        replace(r, role=NARRATION if r.character_type == "Narrator" else DIALOGUE)
        for r in regions
    ]


def _cluster_panels(regions: list[TextRegion], gap: float) -> list[list[TextRegion]]:
    """Greedy first-fit vertical clustering.

    Regions are visited top-down and join the first cluster whose vertical
    span, widened by ``gap`` on both sides, overlaps theirs. Clusters are
    never merged afterwards.
    """
    clusters: list[list[TextRegion]] = []
    spans: list[list[float]] = []  # [top, bottom] per cluster

    for region in sorted(regions, key=lambda r: r.box[0]):
        top, bottom = region.box[0], region.box[2]
        for cluster, span in zip(clusters, spans):
            if top <= span[1] + gap and bottom >= span[0] - gap:
                cluster.append(region)
                span[0] = min(span[0], top)
                span[1] = max(span[1], bottom)
                break
        else:
            clusters.append([region])
            spans.append([top, bottom])

    return clusters


def _row_then_right_to_left(tolerance: float):
    """Comparator on (top, right) pairs: top first, rightmost first within a row."""
    def compare(a, b) -> int:
        y_diff = a[0] - b[0]
        if abs(y_diff) > tolerance:
            return -1 if y_diff < 0 else 1
        x_diff = b[1] - a[1]
        return (x_diff > 0) - (x_diff < 0)
    return compare


def _order_panels(clusters: list[list[TextRegion]], gap: float) -> list[list[TextRegion]]:
    keyed = [
        ((min(r.box[0] for r in c), max(r.box[3] for r in c)), c)
        for c in clusters
    ]
    compare = _row_then_right_to_left(gap)
    keyed.sort(key=cmp_to_key(lambda a, b: compare(a[0], b[0])))
    return [c for _, c in keyed]


def _order_within_panel(panel: list[TextRegion], row_tolerance: float) -> list[TextRegion]:
    """Narration first, then dialogue; each top-down and right-to-left per row."""
    compare = _row_then_right_to_left(row_tolerance)
    key = cmp_to_key(lambda a, b: compare((a.box[0], a.box[3]), (b.box[0], b.box[3])))

    narration = sorted((r for r in panel if r.role == NARRATION), key=key)
    dialogue = sorted((r for r in panel if r.role == DIALOGUE), key=key)
    return narration + dialogue


def process(
    regions: list[TextRegion],
    panel_gap: float = PANEL_GAP_TOLERANCE,
    row_tolerance: float = SAME_ROW_TOLERANCE,
) -> list[TextRegion]:
    """Return the page's regions in reading order.

    Drops malformed and non-narratable regions, forces the narration/dialogue
    role from the character type, clusters regions into panels and orders
    them manga-style. Every returned region carries a 1-based
    ``panel_number`` and a 0-based ``reading_order`` unique across the page.
    Never raises on bad input; an empty or fully-filtered page yields [].
    """
    kept = _assign_roles(_filter_regions(regions))
    if not kept:
        logger.debug("No narratable regions out of %d", len(regions))
        return []

    panels = _order_panels(_cluster_panels(kept, panel_gap), panel_gap)

    script = []
    for panel_number, panel in enumerate(panels, start=1):
        for region in _order_within_panel(panel, row_tolerance):
            script.append(replace(
                region,
                panel_number=panel_number,
                reading_order=len(script),
            ))

    logger.debug(
        "Ordered %d of %d regions into %d panels",
        len(script), len(regions), len(panels),
    )
    return script
