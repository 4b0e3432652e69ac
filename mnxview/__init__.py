"""mnxview: lay out MNX music notation documents and engrave them with VexFlow."""

from mnxview.driver import convert_mnx, translate_document
from mnxview.errors import MNXError, MNXParseError, UnsupportedFeatureError

__version__ = "0.1.0"

__all__ = [
    "MNXError",
    "MNXParseError",
    "UnsupportedFeatureError",
    "__version__",
    "convert_mnx",
    "translate_document",
]
