"""ripsearch: stream ripgrep matches into a cancellable search session."""

__version__ = "0.1.0"
