"""Error categories raised while translating an MNX document."""


class MNXError(Exception):
    """Base class for every error the translator reports to its callers."""

    category: str = "MNX Error"

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else self.category

    def describe(self) -> str:
        """User-facing one-liner, e.g. ``[MNX Parse Error] Metadata missing version.``"""
        return f"[{self.category}] {self}"


class MNXParseError(MNXError):
    """The document is malformed or violates the MNX structure."""

    category = "MNX Parse Error"


class UnsupportedFeatureError(MNXError):
    """The document is well-formed but uses a construct not implemented yet."""

    category = "Unsupported Feature"
