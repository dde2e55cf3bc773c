from __future__ import annotations

import logging
from typing import List, Sequence

from .resolver import ResolvedSet
from .store import Image, ImageStore

logger = logging.getLogger(__name__)


def order_layers(resolved: ResolvedSet) -> List[str]:
    """Layer diff ids of every member of ``resolved``, sorted descending."""
    return sorted((info.layer_diff_id for info in resolved.infos()), reverse=True)


def build_image(store: ImageStore, source: Image, diff_ids: Sequence[str]) -> Image:
    """Copy the layers named by ``diff_ids`` from ``source`` onto a new empty image."""

    image = store.new_empty_image()
    for diff_id in diff_ids:
        logger.debug("appending layer %s", diff_id)
        image = image.append_layers(source.layer_by_diff_id(diff_id))
    return image
