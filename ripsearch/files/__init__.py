"""Matched-file helpers: open pre-flight checks and bounded previews."""

from ripsearch.files.tools import check_file_preflight, read_preview

__all__ = ["check_file_preflight", "read_preview"]
