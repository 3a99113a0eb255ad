"""Pre-flight checks and previews for matched files.

Before a viewer opens a match, the caller asks whether the file is
likely to be slow to display (a known binary type or a large file) so
the user can confirm. Previews are bounded: files over the preview
limit are cut to a fixed number of characters with a visible marker.
"""

from pathlib import Path

from ripsearch.config import Settings, get_settings
from ripsearch.files.models import FilePreflight, FilePreview

TRUNCATION_MARKER = "\n\n... [CRITICAL SIZE LIMIT: File Truncated]"


def format_size(num_bytes: int) -> str:
    """Format a byte count for display.

    Examples:
        >>> format_size(500)
        '500 B'
        >>> format_size(2048)
        '2.0 KB'
    """
    size = float(num_bytes)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024.0:
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"


def _resolve_file(path: str) -> Path:
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return file_path


def check_file_preflight(path: str, settings: Settings | None = None) -> FilePreflight:
    """Check whether opening a matched file needs confirmation.

    Args:
        path: Absolute path of the matched file
        settings: Limits to apply (defaults to application settings)

    Returns:
        FilePreflight with a warning message when the file is binary or large

    Raises:
        FileNotFoundError: If the file does not exist
    """
    settings = settings or get_settings()
    file_path = _resolve_file(path)

    size = file_path.stat().st_size
    extension = file_path.suffix.lower().lstrip(".")
    is_binary = extension in settings.binary_extensions_set
    is_large = size > settings.large_file_bytes
    size_label = format_size(size)

    warning = None
    if is_binary or is_large:
        kind = f"This is a BINARY file (.{extension})." if is_binary else "This is a LARGE file."
        warning = f"{kind}\nSize: {size_label}\n\nOpening this might cause lag. Proceed?"

    return FilePreflight(
        path=str(file_path),
        size=size,
        size_label=size_label,
        extension=extension,
        is_binary=is_binary,
        is_large=is_large,
        warning=warning,
    )


def read_preview(path: str, line_number: int = 0, settings: Settings | None = None) -> FilePreview:
    """Read a file's text for viewing.

    Files larger than `preview_max_bytes` are truncated to the first
    `preview_truncate_chars` characters with a marker appended.

    Args:
        path: Absolute path of the file
        line_number: Line the viewer should scroll to
        settings: Limits to apply (defaults to application settings)

    Returns:
        FilePreview with the (possibly truncated) content

    Raises:
        FileNotFoundError: If the file does not exist
    """
    settings = settings or get_settings()
    file_path = _resolve_file(path)

    truncated = file_path.stat().st_size > settings.preview_max_bytes
    with file_path.open("r", encoding="utf-8", errors="replace") as f:
        if truncated:
            content = f.read(settings.preview_truncate_chars) + TRUNCATION_MARKER
        else:
            content = f.read()

    return FilePreview(
        path=str(file_path),
        name=file_path.name,
        line_number=max(line_number, 0),
        content=content,
        truncated=truncated,
    )
