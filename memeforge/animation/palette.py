"""Shared palette construction for animated output."""
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image

from ..config import (ENCODE_THREAD_PREFIX, PALETTE_BUCKET_STEP, PALETTE_SIZE,
                      TRANSPARENT_ALPHA_THRESHOLD)
from ..logging_utils import get_logger

logger = get_logger(__name__)


class SharedPalette:
    """A palette of at most 256 entries used by every frame of an animation.

    If transparency is set, that index is reserved for pixels whose alpha is
    below the threshold and is never chosen for opaque pixels.
    """

    def __init__(self, colors: Sequence[Tuple[int, int, int]], transparency: Optional[int] = None,
                 alpha_threshold: int = TRANSPARENT_ALPHA_THRESHOLD):
        self.colors = list(colors) or [(0, 0, 0)]
        self.transparency = transparency
        self.alpha_threshold = alpha_threshold

        # Unused slots repeat the first color so they can be folded back to it.
        padded = self.colors + [self.colors[0]] * (PALETTE_SIZE - len(self.colors))
        self.data = [c for rgb in padded for c in rgb]
        self._image = Image.new('P', (1, 1))
        self._image.putpalette(self.data)

    def __len__(self):
        return len(self.colors)

    def apply(self, image: Image.Image) -> Image.Image:
        """Convert an RGBA frame to a paletted image using this palette."""
        mapped = image.convert('RGB').quantize(palette=self._image, dither=Image.Dither.NONE)
        indexes = np.array(mapped, dtype=np.uint8)
        indexes[indexes >= len(self.colors)] = 0
        if self.transparency is not None:
            alpha = np.asarray(image.getchannel('A'))
            indexes[alpha < self.alpha_threshold] = self.transparency

        out = Image.fromarray(indexes)
        out.putpalette(self.data)
        return out


def build_palette(images: Sequence[Image.Image], size: int = PALETTE_SIZE,
                  step: int = PALETTE_BUCKET_STEP,
                  alpha_threshold: int = TRANSPARENT_ALPHA_THRESHOLD) -> SharedPalette:
    """Build one palette from the colors of all images.

    Opaque pixels are bucketed by dividing each channel by step. Buckets
    are ranked by pixel count and the most frequent are kept; the rest are
    dropped. Each kept bucket is represented by the mean color of its
    pixels. One slot is reserved for transparency if any pixel has alpha
    below alpha_threshold.

    Args:
        images: RGBA frames
        size: Maximum number of palette entries, including transparency
        step: Bucket width per channel
        alpha_threshold: Alpha below which a pixel counts as transparent

    Returns:
        SharedPalette: The palette, most frequent colors first
    """
    levels = -(-256 // step)
    nbuckets = levels ** 3
    counts = np.zeros(nbuckets, dtype=np.int64)
    sums = np.zeros((3, nbuckets), dtype=np.float64)
    has_transparency = False

    for image in images:
        pixels = np.asarray(image.convert('RGBA')).reshape(-1, 4)
        opaque = pixels[:, 3] >= alpha_threshold
        if not opaque.all():
            has_transparency = True
        rgb = pixels[opaque, :3].astype(np.int64)
        buckets = rgb // step
        keys = (buckets[:, 0] * levels + buckets[:, 1]) * levels + buckets[:, 2]
        counts += np.bincount(keys, minlength=nbuckets)
        for channel in range(3):
            sums[channel] += np.bincount(keys, weights=rgb[:, channel], minlength=nbuckets)

    limit = size - 1 if has_transparency else size
    used = np.flatnonzero(counts)
    # Most frequent first, ties broken by bucket order
    ranked = used[np.lexsort((used, -counts[used]))]
    if len(ranked) > limit:
        logger.debug(f"[PALETTE] Dropping {len(ranked) - limit} of {len(ranked)} color buckets")
        ranked = ranked[:limit]

    means = np.rint(sums[:, ranked] / counts[ranked]).astype(np.int64).T
    colors = [tuple(int(c) for c in rgb) for rgb in means]
    transparency = len(colors) if has_transparency else None

    logger.debug(f"[PALETTE] Built {len(colors)} colors from {len(images)} frame(s), "
                 f"transparency={transparency}")
    return SharedPalette(colors, transparency, alpha_threshold)


def apply_palette(images: Sequence[Image.Image], palette: SharedPalette,
                  max_workers: int = None) -> List[Image.Image]:
    """Convert every image to the shared palette, in parallel."""
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=ENCODE_THREAD_PREFIX) as pool:
        return list(pool.map(palette.apply, images))
