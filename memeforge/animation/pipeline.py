"""Rendering macro text onto every frame of an animated template."""
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from PIL import Image

from ..config import RENDER_THREAD_PREFIX, default_worker_count
from ..errors import EmptyAnimationError, RenderError
from ..logging_utils import get_logger
from ..models import Macro
from ..overlay import MacroRenderer
from .decoder import AnimatedTemplate, Disposal, TemplateFrame
from .palette import apply_palette, build_palette

logger = get_logger(__name__)


class BackdropChain:
    """The backdrop each frame is drawn over, resolved strictly in order.

    Frame i+1's backdrop depends on how frame i is disposed, so backdrops
    are published one at a time while the frames themselves render in
    parallel. Each slot has a single-use event. A frame that fails still
    sets its successor's event, so later frames fail instead of waiting
    forever.
    """

    def __init__(self, count: int, first: Image.Image):
        self._backdrops = [None] * count
        self._ready = [threading.Event() for _ in range(count)]
        self._backdrops[0] = first
        self._ready[0].set()

    def __len__(self):
        return len(self._backdrops)

    def wait(self, i: int) -> Image.Image:
        """Block until frame i's backdrop is known, then return it.

        Raises:
            RenderError: If an earlier frame failed before publishing it
        """
        self._ready[i].wait()
        backdrop = self._backdrops[i]
        if backdrop is None:
            raise RenderError(f"backdrop for frame {i} unavailable after an earlier failure")
        return backdrop

    def publish(self, i: int, backdrop: Image.Image) -> None:
        self._backdrops[i] = backdrop

    def release(self, i: int) -> None:
        """Wake frame i, whether or not its backdrop was published."""
        if i < len(self._ready):
            self._ready[i].set()


def next_backdrop(disposal: Disposal, background: Image.Image, current: Image.Image,
                  composed: Image.Image) -> Image.Image:
    """The backdrop inherited by the following frame.

    Args:
        disposal: How the current frame is disposed
        background: The canvas cleared to the background color
        current: The backdrop the current frame was drawn over
        composed: The current frame drawn over current, without text
    """
    if disposal == Disposal.BACKGROUND:
        return background
    if disposal == Disposal.PREVIOUS:
        return current
    return composed


class AnimationPipeline:
    """Renders a macro onto each frame of an animation and requantizes it."""

    def __init__(self, renderer: MacroRenderer = None, max_workers: int = None):
        """Initialize the pipeline.

        Args:
            renderer: MacroRenderer instance or None for default
            max_workers: Worker threads per phase, None for the CPU count
        """
        self.renderer = renderer if renderer is not None else MacroRenderer()
        self.max_workers = max_workers or default_worker_count()

    def render(self, animation: AnimatedTemplate, macro: Macro) -> AnimatedTemplate:
        """Draw macro onto every frame of animation, in place.

        On return every frame covers the full canvas and is paletted with
        one shared palette. Durations and the loop count are kept.

        Args:
            animation: The decoded template
            macro: The macro to draw

        Returns:
            AnimatedTemplate: animation, mutated

        Raises:
            EmptyAnimationError: If the animation has no frames
            InvalidMacroError: If the macro cannot be rendered
        """
        if not animation.frames:
            raise EmptyAnimationError("animation has no frames")

        render_start = time.time()
        frames = animation.frames
        bounds = animation.bounds()
        origin = animation.union_box()[:2]
        sources = self.renderer.sources(macro, len(frames))

        background = Image.new('RGBA', bounds, animation.background)
        chain = BackdropChain(len(frames), background)

        def render_frame(i: int) -> Image.Image:
            frame = frames[i]
            try:
                backdrop = chain.wait(i)
                composed = backdrop.copy()
                composed.alpha_composite(frame.image, dest=(frame.box[0] - origin[0], frame.box[1] - origin[1]))
                if i + 1 < len(frames):
                    chain.publish(i + 1, next_backdrop(frame.disposal, background, backdrop, composed.copy()))
            finally:
                chain.release(i + 1)

            composed.alpha_composite(self.renderer.render_overlay(sources, i, bounds))
            return composed

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=RENDER_THREAD_PREFIX) as pool:
            futures = [pool.submit(render_frame, i) for i in range(len(frames))]
            rendered = [f.result() for f in futures]

        composite_done = time.time()
        palette = build_palette(rendered)
        paletted = apply_palette(rendered, palette, self.max_workers)

        # Frames are complete pictures now; clear each before drawing the next
        # only when some pixels are transparent.
        disposal = Disposal.BACKGROUND if palette.transparency is not None else Disposal.NONE
        animation.frames = [
            TemplateFrame(image=image, box=(0, 0) + bounds, disposal=disposal, duration=frame.duration)
            for image, frame in zip(paletted, frames)
        ]
        animation.transparency = palette.transparency

        logger.debug(f"[GIF] Macro {macro.id}: {len(frames)} frame(s) at {bounds[0]}x{bounds[1]}, "
                     f"composite {(composite_done - render_start) * 1000:.1f}ms, "
                     f"palette {(time.time() - composite_done) * 1000:.1f}ms, "
                     f"{len(palette)} colors, {self.max_workers} workers")
        return animation


def render_animated(animation: AnimatedTemplate, macro: Macro, renderer: MacroRenderer = None,
                    max_workers: int = None) -> AnimatedTemplate:
    """Render macro onto every frame of animation in place and return it."""
    return AnimationPipeline(renderer, max_workers).render(animation, macro)
