"""Abstract base formatter and output container.

WHY: The transcript JSON is the required output, but the same
TranscriptDocument can be rendered in other shapes (plain text for
quick reading). A shared interface lets the batch driver run any
selection of formatters generically.

HOW: BaseFormatter is an ABC with a ``name`` property and a
``format()`` method. FormatterOutput bundles a file suffix with its
content and MIME type.

RULES:
- Subclasses MUST implement ``name`` and ``format()``
- ``format()`` returns a list; single-file formatters return one item
- ``suffix`` includes the extension dot, e.g. ``".json"``
- The caller prepends the base name and resolves collisions
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from whisper_converter.core.ir import TranscriptDocument


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: Appended to the base name, e.g. ``".json"`` →
                ``"episode-1.json"``.
        content: The file content as text.
        media_type: MIME type for the content.
    """

    suffix: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for all transcript formatters.

    To add a new output format:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement format() and name
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'Transcript JSON'."""

    @abstractmethod
    def format(self, document: TranscriptDocument) -> list[FormatterOutput]:
        """Render the TranscriptDocument into one or more output files."""
