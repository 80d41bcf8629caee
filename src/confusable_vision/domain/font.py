"""Font descriptors supplied by the font registry.

A descriptor identifies one font face the renderer can draw with. Descriptors
are created once when the registry loads and are never mutated afterwards.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FontCategory(str, Enum):
    """Broad role of a font in a scoring run."""

    STANDARD = "standard"
    SPECIALIZED = "specialized"


@dataclass(frozen=True)
class FontDescriptor:
    """A font face known to the registry.

    Attributes:
        family: Family name used to address the font (e.g., "Arial")
        path: Path to the font file on disk
        category: Standard text font or specialized script/symbol font
        available: Whether the font file exists and could be read
        face_index: Face index inside a collection (.ttc) file
    """

    family: str
    path: str
    category: FontCategory = FontCategory.STANDARD
    available: bool = True
    face_index: int = 0

    @property
    def is_standard(self) -> bool:
        """Check whether this is a standard text font."""
        return self.category == FontCategory.STANDARD

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary.

        Returns:
            Dictionary representation of the descriptor
        """
        return {
            "family": self.family,
            "path": self.path,
            "category": self.category.value,
            "available": self.available,
            "face_index": self.face_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FontDescriptor":
        """Deserialize from dictionary.

        Args:
            data: Dictionary representation of a descriptor

        Returns:
            FontDescriptor instance
        """
        return cls(
            family=data["family"],
            path=data["path"],
            category=FontCategory(data.get("category", "standard")),
            available=data.get("available", True),
            face_index=data.get("face_index", 0),
        )
