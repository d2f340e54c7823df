"""Logo similarity against known brand logos (average hash)."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin

import httpx
import imagehash
from PIL import Image, UnidentifiedImageError

from ..analyzer.html_content import MAX_LOGO_IMAGES, parse_content

logger = logging.getLogger(__name__)

HASH_SIZE = 8
MAX_IMAGE_BYTES = 2_000_000
USER_AGENT = "PhishRadar-Bot/1.0"


@dataclass(frozen=True)
class LogoMatch:
    brand: Optional[str]
    similarity: float
    image_url: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.brand is not None


NO_MATCH = LogoMatch(brand=None, similarity=0.0)


def _hash_similarity(a: imagehash.ImageHash, b: imagehash.ImageHash) -> float:
    diff = a - b
    bits = a.hash.size
    return max(0.0, (bits - diff) / bits)


def average_hash(image: Image.Image) -> imagehash.ImageHash:
    return imagehash.average_hash(image.convert("L"), hash_size=HASH_SIZE)


class LogoSimilarity:
    """Compares logo/favicon images on a page against registered brand logos."""

    def __init__(
        self,
        reference_dir: Optional[Path] = None,
        threshold: float = 0.90,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.threshold = threshold
        self.timeout = timeout
        self._transport = transport
        self._references: dict[str, imagehash.ImageHash] = {}
        if reference_dir is not None:
            self.load_references(Path(reference_dir))

    @property
    def brands(self) -> list[str]:
        return sorted(self._references)

    def register_brand(self, brand: str, image: Image.Image) -> None:
        self._references[brand.strip().lower()] = average_hash(image)

    def load_references(self, directory: Path) -> int:
        """Load ``<brand>.png`` reference logos; returns the number loaded."""
        if not directory.is_dir():
            return 0
        loaded = 0
        for path in sorted(directory.glob("*.png")):
            try:
                with Image.open(path) as image:
                    self.register_brand(path.stem, image)
                loaded += 1
            except (OSError, UnidentifiedImageError) as exc:
                logger.warning("Skipping unreadable logo %s: %s", path, exc)
        logger.info("Loaded %d reference logos from %s", loaded, directory)
        return loaded

    def best_match(self, image: Image.Image) -> LogoMatch:
        if not self._references:
            return NO_MATCH
        candidate = average_hash(image)
        best = NO_MATCH
        for brand, reference in self._references.items():
            similarity = _hash_similarity(candidate, reference)
            if similarity > best.similarity:
                best = LogoMatch(brand=brand, similarity=similarity)
        if best.similarity >= self.threshold:
            return best
        return NO_MATCH

    async def _fetch_image(self, client: httpx.AsyncClient, url: str) -> Optional[Image.Image]:
        try:
            resp = await client.get(url)
        except httpx.HTTPError as exc:
            logger.debug("Logo fetch failed for %s: %s", url, exc)
            return None
        if resp.status_code != 200 or len(resp.content) > MAX_IMAGE_BYTES:
            return None
        try:
            image = Image.open(io.BytesIO(resp.content))
            image.load()
            return image
        except (OSError, UnidentifiedImageError) as exc:
            logger.debug("Logo decode failed for %s: %s", url, exc)
            return None

    async def check(self, url: str, html: Optional[str] = None) -> LogoMatch:
        """Return the best brand match at or above the threshold, else no match."""
        if not self._references or not html:
            return NO_MATCH
        image_urls = []
        for src in parse_content(html).logo_images[:MAX_LOGO_IMAGES]:
            resolved = urljoin(url, src)
            if resolved.startswith(("http://", "https://")) and resolved not in image_urls:
                image_urls.append(resolved)
        if not image_urls:
            return NO_MATCH

        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        ) as client:
            for image_url in image_urls:
                image = await self._fetch_image(client, image_url)
                if image is None:
                    continue
                match = self.best_match(image)
                if match.matched:
                    return LogoMatch(match.brand, match.similarity, image_url)
        return NO_MATCH
