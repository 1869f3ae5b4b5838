"""Candidate discovery and search/replace helpers."""

from .discovery import DirectoryScanner
from .replace import ReplacementChain, exclude_matches, find_matches

__all__ = ["DirectoryScanner", "ReplacementChain", "exclude_matches", "find_matches"]
