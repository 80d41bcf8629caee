"""Font registry: availability, coverage and fallback discovery.

The registry is built once per process from font definitions. It checks
which font files exist, reads each font's character map with fontTools and
keeps the result as read-only state. Renderers and the scoring coordinator
receive the registry instead of querying the host ad hoc.
"""

import re
from collections.abc import Iterable, Iterator
from pathlib import Path

import structlog
from fontTools.ttLib import TTFont, TTLibError

from confusable_vision.config import FontConfig, FontDefinition
from confusable_vision.domain import FontCategory, FontDescriptor
from confusable_vision.exceptions import FontLoadError, FontNotRegisteredError

logger = structlog.get_logger("confusable_vision.fonts")

FONT_SUFFIXES = (".ttf", ".otf", ".ttc")

_WEIGHT_SUFFIX = re.compile(
    r"-(Regular|Bold|Italic|Light|Medium|Thin|SemiBold|ExtraBold|Black|Blk|ExtLt)$",
    re.IGNORECASE,
)
_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")


def family_from_filename(filename: str) -> str:
    """Derive a readable family name from a font file name.

    Args:
        filename: File name such as "NotoSansTifinagh-Regular.otf"

    Returns:
        Family name such as "Noto Sans Tifinagh"
    """
    base = Path(filename).stem
    base = _WEIGHT_SUFFIX.sub("", base)
    return _CAMEL_BOUNDARY.sub(r"\1 \2", base)


def read_codepoints(path: Path, face_index: int = 0) -> frozenset[int]:
    """Read the set of codepoints a font maps to glyphs.

    Args:
        path: Path to the font file
        face_index: Face index for collection files

    Returns:
        Codepoints present in the font's best Unicode cmap

    Raises:
        FontLoadError: If the file cannot be parsed
    """
    try:
        font = TTFont(str(path), fontNumber=face_index, lazy=True)
    except (TTLibError, OSError, AssertionError) as e:
        raise FontLoadError(str(path), str(e)) from e

    try:
        cmap = font.getBestCmap() or {}
        return frozenset(cmap)
    except Exception as e:
        raise FontLoadError(str(path), f"unreadable cmap: {e}") from e
    finally:
        font.close()


class FontRegistry:
    """Read-only registry of fonts and their character coverage.

    Example:
        registry = FontRegistry.from_config(settings.fonts)
        for font in registry.query_coverage(ord("m")):
            print(font.family)
    """

    def __init__(
        self,
        fonts: Iterable[FontDescriptor],
        coverage: dict[str, frozenset[int]],
        fallbacks: Iterable[tuple[FontDescriptor, frozenset[int]]] = (),
    ) -> None:
        """Initialize the registry from already-loaded data.

        Args:
            fonts: Registered font descriptors, in preference order
            coverage: Codepoint sets keyed by family
            fallbacks: Fallback fonts with their coverage, most preferred first
        """
        self._fonts: tuple[FontDescriptor, ...] = tuple(fonts)
        self._by_family = {font.family: font for font in self._fonts}
        self._coverage = dict(coverage)
        self._fallbacks: tuple[tuple[FontDescriptor, frozenset[int]], ...] = tuple(fallbacks)
        for font, codepoints in self._fallbacks:
            self._by_family.setdefault(font.family, font)
            self._coverage.setdefault(font.family, codepoints)

    @classmethod
    def from_config(cls, config: FontConfig) -> "FontRegistry":
        """Build a registry from font configuration.

        Missing or unreadable font files are registered as unavailable
        rather than raising, since installed fonts differ per machine.

        Args:
            config: Font definitions and fallback directories

        Returns:
            Loaded registry
        """
        fonts: list[FontDescriptor] = []
        coverage: dict[str, frozenset[int]] = {}

        for definition in config.definitions:
            descriptor, codepoints = _load_definition(definition)
            fonts.append(descriptor)
            if codepoints is not None:
                coverage[descriptor.family] = codepoints

        registered_paths = {font.path for font in fonts if font.available}
        registered_families = {font.family for font in fonts}
        fallbacks = list(_scan_fallback_dirs(config.fallback_dirs, registered_paths, registered_families))

        available = sum(1 for font in fonts if font.available)
        logger.info(
            "Font registry loaded",
            available=available,
            total=len(fonts),
            fallbacks=len(fallbacks),
        )
        return cls(fonts, coverage, fallbacks)

    def list_fonts(self) -> list[FontDescriptor]:
        """Return every registered font, available or not."""
        return list(self._fonts)

    def available_fonts(self, category: FontCategory | None = None) -> list[FontDescriptor]:
        """Return available fonts, optionally restricted to one category."""
        return [
            font
            for font in self._fonts
            if font.available and (category is None or font.category == category)
        ]

    def get(self, family: str) -> FontDescriptor:
        """Look up a font by family.

        Raises:
            FontNotRegisteredError: If the family is unknown
        """
        try:
            return self._by_family[family]
        except KeyError:
            raise FontNotRegisteredError(family) from None

    def __contains__(self, family: object) -> bool:
        return family in self._by_family

    def __iter__(self) -> Iterator[FontDescriptor]:
        return iter(self._fonts)

    def __len__(self) -> int:
        return len(self._fonts)

    def covers(self, family: str, text: str) -> bool:
        """Check whether a font maps every character of ``text``.

        Fonts without coverage data are assumed to cover everything.
        """
        codepoints = self._coverage.get(family)
        if codepoints is None:
            return True
        return all(ord(ch) in codepoints for ch in text)

    def query_coverage(self, codepoint: int) -> list[FontDescriptor]:
        """Return available registered fonts that contain ``codepoint``.

        Standard fonts come first, then specialized fonts, each in
        registration order.
        """
        matches = [
            font
            for font in self._fonts
            if font.available and codepoint in self._coverage.get(font.family, frozenset())
        ]
        return sorted(matches, key=lambda font: 0 if font.is_standard else 1)

    def discover_fallback(self, codepoint: int) -> FontDescriptor | None:
        """Find a fallback font for a codepoint no registered font covers.

        Args:
            codepoint: Unicode codepoint

        Returns:
            The most preferred fallback font containing the codepoint, or None
        """
        for font, codepoints in self._fallbacks:
            if codepoint in codepoints:
                return font
        return None


def _load_definition(definition: FontDefinition) -> tuple[FontDescriptor, frozenset[int] | None]:
    """Check one font definition and read its coverage."""
    path = definition.path
    descriptor = FontDescriptor(
        family=definition.family,
        path=str(path),
        category=definition.category,
        available=False,
        face_index=definition.face_index,
    )

    if not path.is_file():
        logger.debug("Font not found", family=definition.family, path=str(path))
        return descriptor, None

    try:
        codepoints = read_codepoints(path, definition.face_index)
    except FontLoadError as e:
        logger.warning("Font failed to load", family=definition.family, error=e.reason)
        return descriptor, None

    logger.debug(
        "Font registered",
        family=definition.family,
        path=str(path),
        codepoints=len(codepoints),
    )
    return (
        FontDescriptor(
            family=definition.family,
            path=str(path),
            category=definition.category,
            available=True,
            face_index=definition.face_index,
        ),
        codepoints,
    )


def _fallback_sort_key(path: Path) -> tuple[str, int, str]:
    """Group files by family, with the Regular face first."""
    regular = 0 if path.stem.lower().endswith("-regular") else 1
    return family_from_filename(path.name), regular, str(path)


def _scan_fallback_dirs(
    directories: list[Path],
    registered_paths: set[str],
    registered_families: set[str] | None = None,
) -> Iterator[tuple[FontDescriptor, frozenset[int]]]:
    """Yield readable fonts under the fallback directories, in order.

    Only the first readable file of each family is kept, so a family name
    always resolves to the file that ``discover_fallback`` returns.
    """
    seen: set[str] = set(registered_paths)
    families: set[str] = set(registered_families or ())
    for directory in directories:
        if not directory.is_dir():
            logger.debug("Fallback directory missing", path=str(directory))
            continue

        for path in sorted(directory.rglob("*"), key=_fallback_sort_key):
            if path.suffix.lower() not in FONT_SUFFIXES or "LastResort" in path.name:
                continue
            if str(path) in seen:
                continue
            seen.add(str(path))
            family = family_from_filename(path.name)
            if family in families:
                logger.debug("Skipping duplicate fallback family", family=family, path=str(path))
                continue

            try:
                codepoints = read_codepoints(path)
            except FontLoadError as e:
                logger.debug("Skipping unreadable fallback font", path=str(path), error=e.reason)
                continue
            families.add(family)

            yield (
                FontDescriptor(
                    family=family,
                    path=str(path),
                    category=FontCategory.SPECIALIZED,
                    available=True,
                ),
                codepoints,
            )
