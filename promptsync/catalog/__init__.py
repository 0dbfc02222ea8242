"""
Prompt Catalog — Unified listing of mirrored and active prompts.
"""

from .catalog import PromptCatalog, determine_category, extract_description
from .models import CATEGORIES, PromptRecord

__all__ = [
    "CATEGORIES",
    "PromptCatalog",
    "PromptRecord",
    "determine_category",
    "extract_description",
]
