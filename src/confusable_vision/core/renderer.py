"""Glyph rendering with Pillow.

Text is drawn black on a white greyscale canvas at a fixed font size, with
its anchor at the canvas centre, so that ink extraction downstream sees the
same baseline for every glyph of a font. Sequences are drawn as one text run
so adjacent letters fuse the way they do on screen.

A render that the font API reports as successful may still show nothing
useful. Renders are therefore inspected: no ink, the font's missing-glyph
box, its replacement character, or a Last Resort style box all count as
"no render".
"""

import numpy as np
import structlog
from PIL import Image, ImageDraw, ImageFont

from confusable_vision.config import RenderConfig
from confusable_vision.core.normalizer import INK_THRESHOLD, find_ink_bounds
from confusable_vision.domain import GlyphRender
from confusable_vision.exceptions import FontLoadError, RenderUnavailableError
from confusable_vision.io.codec import encode_png
from confusable_vision.io.fonts import FontRegistry

logger = structlog.get_logger("confusable_vision.renderer")

NONCHARACTER = "\uffff"
REPLACEMENT_CHARACTER = "\ufffd"

# Last Resort boxes: a large ink box whose four edges are mostly dark
BOX_MIN_SIDE = 15
BOX_EDGE_DARK = 200
BOX_EDGE_FRACTION = 0.75


def looks_like_box(pixels: np.ndarray, threshold: int = INK_THRESHOLD) -> bool:
    """Check whether a render looks like a Last Resort placeholder box."""
    bounds = find_ink_bounds(pixels, threshold)
    if bounds is None or bounds.width < BOX_MIN_SIDE or bounds.height < BOX_MIN_SIDE:
        return False

    box = pixels[bounds.min_y:bounds.max_y + 1, bounds.min_x:bounds.max_x + 1]
    edges = (box[0, :], box[-1, :], box[:, 0], box[:, -1])
    return all(np.count_nonzero(edge < BOX_EDGE_DARK) / edge.size > BOX_EDGE_FRACTION for edge in edges)


def touches_canvas_edge(pixels: np.ndarray, threshold: int = INK_THRESHOLD) -> bool:
    """Check whether ink reaches the border of the canvas, i.e. may be clipped."""
    bounds = find_ink_bounds(pixels, threshold)
    if bounds is None:
        return False
    height, width = pixels.shape
    return bounds.min_x == 0 or bounds.min_y == 0 or bounds.max_x == width - 1 or bounds.max_y == height - 1


def detect_fallback(pixels: np.ndarray, references: dict[str, np.ndarray]) -> str | None:
    """Return the name of the first reference render identical to ``pixels``.

    Args:
        pixels: Render to classify
        references: Reference renders keyed by name (e.g., a font family)

    Returns:
        Matching reference name, or None
    """
    for name, reference in references.items():
        if reference.shape == pixels.shape and np.array_equal(reference, pixels):
            return name
    return None


class GlyphRenderer:
    """Renders characters and short sequences into greyscale PNG images.

    The renderer is built around an already-loaded font registry and keeps
    a cache of opened font faces and of each font's placeholder renders.

    Example:
        renderer = GlyphRenderer(registry, settings.render)
        render = renderer.render("rn", "DejaVu Sans")
        if render is None:
            ...  # font cannot show "rn"
    """

    def __init__(
        self,
        registry: FontRegistry,
        config: RenderConfig | None = None,
        ink_threshold: int = INK_THRESHOLD,
    ) -> None:
        """Initialize the renderer.

        Args:
            registry: Font registry used to resolve families and coverage
            config: Canvas and font size settings (defaults if None)
            ink_threshold: Background threshold used to detect ink
        """
        self.registry = registry
        self.config = config or RenderConfig()
        self.ink_threshold = ink_threshold
        self._faces: dict[str, ImageFont.FreeTypeFont] = {}
        self._placeholders: dict[tuple[str, int], dict[str, np.ndarray]] = {}

    def canvas_for(self, text: str) -> tuple[int, int]:
        """Return the ``(width, height)`` canvas used for ``text``."""
        height = self.config.canvas_size
        width = self.config.sequence_canvas_width if len(text) > 1 else height
        return width, height

    def _face(self, family: str) -> ImageFont.FreeTypeFont:
        face = self._faces.get(family)
        if face is not None:
            return face

        descriptor = self.registry.get(family)
        try:
            face = ImageFont.truetype(
                descriptor.path,
                self.config.font_size,
                index=descriptor.face_index,
            )
        except OSError as e:
            raise FontLoadError(descriptor.path, str(e)) from e

        self._faces[family] = face
        return face

    def draw(self, text: str, family: str) -> np.ndarray:
        """Draw text and return the raw ``(height, width)`` greyscale array.

        Raises:
            FontNotRegisteredError: If the family is unknown
            FontLoadError: If the font file cannot be opened
        """
        width, height = self.canvas_for(text)
        image = Image.new("L", (width, height), 255)
        ImageDraw.Draw(image).text(
            (width / 2, height / 2),
            text,
            font=self._face(family),
            fill=0,
            anchor="mm",
        )
        return np.asarray(image, dtype=np.uint8)

    def _placeholder_renders(self, family: str, length: int) -> dict[str, np.ndarray]:
        key = (family, length)
        cached = self._placeholders.get(key)
        if cached is not None:
            return cached

        references = {"notdef": self.draw(NONCHARACTER * length, family)}
        if length == 1:
            references["replacement"] = self.draw(REPLACEMENT_CHARACTER, family)
        self._placeholders[key] = references
        return references

    def render_status(self, text: str, family: str, pixels: np.ndarray | None = None) -> str:
        """Classify a render as "native", "blank", "notdef" or "box".

        Args:
            text: Character or sequence
            family: Font family
            pixels: Existing render of ``text`` (drawn if None)
        """
        if pixels is None:
            pixels = self.draw(text, family)

        if find_ink_bounds(pixels, self.ink_threshold) is None:
            return "blank"

        references = dict(self._placeholder_renders(family, len(text)))
        if text == REPLACEMENT_CHARACTER:
            references.pop("replacement", None)
        if detect_fallback(pixels, references) is not None:
            return "notdef"

        if len(text) == 1 and looks_like_box(pixels, self.ink_threshold):
            return "box"
        return "native"

    def render(self, text: str, family: str) -> GlyphRender | None:
        """Render text in one font.

        Args:
            text: Character or short sequence
            family: Registered font family

        Returns:
            The render, or None when the font cannot show the text

        Raises:
            FontNotRegisteredError: If the family is unknown
            FontLoadError: If the font file cannot be opened
        """
        if self.config.check_coverage and not self.registry.covers(family, text):
            logger.debug("Text not in font cmap", text=text, font=family)
            return None

        pixels = self.draw(text, family)
        status = self.render_status(text, family, pixels)
        if status != "native":
            logger.debug("Render rejected", text=text, font=family, status=status)
            return None

        height, width = pixels.shape
        if touches_canvas_edge(pixels, self.ink_threshold):
            logger.warning("Render clipped at canvas edge", text=text, font=family, width=width, height=height)

        image_bytes = encode_png(pixels.tobytes(), width, height)
        return GlyphRender(
            text=text,
            font_family=family,
            image_bytes=image_bytes,
            width=width,
            height=height,
        )

    def render_or_raise(self, text: str, family: str) -> GlyphRender:
        """Render text, raising instead of returning None.

        Raises:
            RenderUnavailableError: If the font cannot show the text
        """
        render = self.render(text, family)
        if render is None:
            raise RenderUnavailableError(text, family)
        return render
