"""Content classification, transformation and display rendering."""

from .classifier import classify, looks_like_structured_data
from .display import DisplayOptions, DisplayProcessor, process_for_display
from .preview import generate_preview
from .promotional import PromotionalDetector, PromotionalVerdict
from .sanitizer import SoupSanitizer
from .transformer import ContentTransformer, TransformOptions, transform

__all__ = [
    "ContentTransformer",
    "DisplayOptions",
    "DisplayProcessor",
    "PromotionalDetector",
    "PromotionalVerdict",
    "SoupSanitizer",
    "TransformOptions",
    "classify",
    "generate_preview",
    "looks_like_structured_data",
    "process_for_display",
    "transform",
]
