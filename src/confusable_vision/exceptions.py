"""Exception hierarchy for Confusable Vision."""


class ConfusableVisionError(Exception):
    """Base exception for all Confusable Vision errors."""

    pass


class ConfigurationError(ConfusableVisionError):
    """Invalid or unreadable configuration."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration '{source}': {reason}")


class FontError(ConfusableVisionError):
    """Errors related to font discovery or loading."""

    pass


class FontLoadError(FontError):
    """Error loading a font file."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load font '{path}': {reason}")


class FontNotRegisteredError(FontError):
    """Requested font family is not in the registry."""

    def __init__(self, family: str) -> None:
        self.family = family
        super().__init__(f"Font '{family}' is not registered")


class RenderError(ConfusableVisionError):
    """Errors related to glyph rendering."""

    pass


class RenderUnavailableError(RenderError):
    """Font cannot produce a visible glyph for the requested text."""

    def __init__(self, text: str, family: str) -> None:
        self.text = text
        self.family = family
        super().__init__(f"No visible render for {text!r} in '{family}'")


class DecodeError(ConfusableVisionError):
    """A rendered image could not be decoded into greyscale samples."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Image decode failed: {reason}")


class ImageShapeError(ConfusableVisionError):
    """Two images that must share a shape do not."""

    def __init__(self, shape_a: tuple[int, int], shape_b: tuple[int, int]) -> None:
        self.shape_a = shape_a
        self.shape_b = shape_b
        super().__init__(f"Image shapes differ: {shape_a} vs {shape_b}")


class IntegrityViolationError(ConfusableVisionError):
    """Worker results do not map one-to-one onto submitted work items.

    Always fatal for the batch: it signals a coordinator bug, not bad input.
    """

    def __init__(
        self,
        missing: list[int],
        duplicated: list[int],
        unexpected: list[int] | None = None,
    ) -> None:
        self.missing = missing
        self.duplicated = duplicated
        self.unexpected = unexpected or []
        super().__init__(
            f"Result integrity violated: {len(missing)} missing, "
            f"{len(duplicated)} duplicated, {len(self.unexpected)} unexpected idx values"
        )
