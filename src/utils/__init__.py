"""Utility modules for the AI-visibility audit engine."""

from .config import Settings, get_settings
from .urls import (
    normalise_path,
    normalize_gsc_page_key,
    tracked_path_key,
    normalize_task_url,
    path_matches_pattern,
    extract_domain,
)

__all__ = [
    "Settings",
    "get_settings",
    # URL normalisation
    "normalise_path",
    "normalize_gsc_page_key",
    "tracked_path_key",
    "normalize_task_url",
    "path_matches_pattern",
    "extract_domain",
]
