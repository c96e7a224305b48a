"""Glue: classifier JSON → ordered script → narration engine."""

import json
import logging

from manga_narrator import reading_order
from manga_narrator.engine import NarrationEngine
from manga_narrator.models import NarrationSettings, TextRegion

logger = logging.getLogger(__name__)


def regions_from_json(data) -> list[TextRegion]:
    """Accept a list of regions or an object wrapping one under "lines"/"script"/"regions"."""
    if isinstance(data, dict):
        for key in ("lines", "script", "regions"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
        else:
            return []
    if not isinstance(data, list):
        return []

    regions = []
    for item in data:
        if not isinstance(item, dict):
            logger.debug("Dropping non-object region: %r", item)
            continue
        regions.append(TextRegion.from_dict(item))
    return regions


def load_regions(path: str) -> list[TextRegion]:
    """Load classifier output for one page. Raises on unreadable JSON."""
    with open(path) as f:
        return regions_from_json(json.load(f))


def build_script(regions: list[TextRegion]) -> list[TextRegion]:
    return reading_order.process(regions)


async def narrate_page(
    regions: list[TextRegion],
    engine: NarrationEngine,
    settings: NarrationSettings | None = None,
    on_line_start=None,
    start_index: int = 0,
) -> int:
    """Order a page's regions and narrate them. Returns the resume index."""
    script = build_script(regions)
    if not script:
        logger.info("Nothing to narrate on this page")
        return 0
    return await engine.play_script(script, on_line_start, settings, start_index)
