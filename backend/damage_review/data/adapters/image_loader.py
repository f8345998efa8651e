import os
from collections import OrderedDict
from dataclasses import replace
from typing import Tuple

import cv2
import numpy as np
import requests

from damage_review.core.utils.logger import get_logger
from damage_review.domain.entities.damage_entity import DamageImage
from damage_review.domain.errors import NotFound, StoreUnavailable

_logger = get_logger("image_loader")


class ImageLoader:
    """Loads report photos as BGR rasters.

    Accepts http(s) URLs (fetched with requests) or local paths. Decoded
    rasters are cached by URL, keeping the most recently used max_cached.
    """

    def __init__(self, timeout: float = 30.0, max_cached: int = 32) -> None:
        if max_cached < 1:
            raise ValueError(f"max_cached must be at least 1, got {max_cached}")
        self._timeout = timeout
        self._max_cached = max_cached
        self._cache: "OrderedDict[str, np.ndarray]" = OrderedDict()

    def _sanitize_url(self, url: str) -> str:
        return url.strip().strip('`"')

    def load(self, image_url: str) -> np.ndarray:
        url = self._sanitize_url(image_url)
        cached = self._cache.get(url)
        if cached is not None:
            self._cache.move_to_end(url)
            return cached

        if url.lower().startswith(("http://", "https://")):
            raster = self._fetch(url)
        else:
            if not os.path.isfile(url):
                raise NotFound(f"Image file not found: {url}")
            raster = cv2.imread(url, cv2.IMREAD_COLOR)
            if raster is None:
                raise ValueError(f"Could not decode image: {url}")

        self._cache[url] = raster
        if len(self._cache) > self._max_cached:
            evicted, _ = self._cache.popitem(last=False)
            _logger.debug("Image evicted from cache: %s", evicted)
        _logger.debug("Image loaded: %s (%dx%d)", url, raster.shape[1], raster.shape[0])
        return raster

    def _fetch(self, url: str) -> np.ndarray:
        try:
            resp = requests.get(url, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            _logger.error("Error fetching image %s: %s", url, e)
            raise StoreUnavailable(f"Could not fetch image: {e}") from e
        buf = np.frombuffer(resp.content, dtype=np.uint8)
        raster = cv2.imdecode(buf, cv2.IMREAD_COLOR)
        if raster is None:
            raise ValueError(f"Could not decode image: {url}")
        return raster

    def dimensions(self, image_url: str) -> Tuple[int, int]:
        """(width, height) in pixels."""
        height, width = self.load(image_url).shape[:2]
        return width, height

    def resolve(self, image: DamageImage) -> DamageImage:
        """Copy of the image with width/height filled from its raster."""
        if image.width is not None and image.height is not None:
            return image
        width, height = self.dimensions(image.image_url)
        return replace(image, width=width, height=height)
