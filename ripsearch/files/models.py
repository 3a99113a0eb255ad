"""Pydantic models for matched-file pre-flight and preview."""

from pydantic import BaseModel, Field


class FilePreflight(BaseModel):
    """Result of checking a matched file before opening it.

    Attributes:
        path: Absolute path of the file
        size: Size in bytes
        size_label: Human-readable size (e.g. '1.5 MB')
        extension: Lowercase extension without the dot
        is_binary: Extension is in the configured binary list
        is_large: Size exceeds the large-file threshold
        warning: Message to confirm with the user, None when safe to open
    """

    path: str
    size: int = Field(..., ge=0)
    size_label: str
    extension: str = ""
    is_binary: bool = False
    is_large: bool = False
    warning: str | None = None

    @property
    def needs_confirmation(self) -> bool:
        return self.warning is not None


class FilePreview(BaseModel):
    """File text prepared for a viewer, positioned at a line.

    Attributes:
        path: Absolute path of the file
        name: File name for the viewer title
        line_number: Line to scroll to (0 when unknown)
        content: File text, possibly truncated
        truncated: True when the file exceeded the preview size limit
    """

    path: str
    name: str
    line_number: int = 0
    content: str = ""
    truncated: bool = False
