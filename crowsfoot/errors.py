"""
Error taxonomy for the diagram compiler.

- ERSyntaxError: the source text cannot be parsed (always carries a line)
- EmptyInputError: nothing to generate from
- LayoutEngineFailure: the layered engine failed (recovered internally)
- SerializationError: a canvas graph has no ER content to rebuild text from
"""


class ERDiagramError(Exception):
    """Base class for all diagram compiler errors."""


class ERSyntaxError(ERDiagramError):
    """A source line could not be parsed.

    The line number is 1-based so callers can highlight the offending line.
    """

    def __init__(self, message: str, line: int = 1):
        self.message = message
        self.line = line
        super().__init__(f"line {line}: {message}")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"message": self.message, "line": self.line}


class EmptyInputError(ERDiagramError):
    """Raised when generation is requested for empty or whitespace-only text."""

    def __init__(self, message: str = "Source text is empty"):
        super().__init__(message)


class LayoutEngineFailure(ERDiagramError):
    """The external layered layout engine failed. Never leaves the layout module."""


class SerializationError(ERDiagramError):
    """The canvas graph contains nothing that can be serialized."""
