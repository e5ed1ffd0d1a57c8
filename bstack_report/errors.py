"""Base exception shared by every fatal report error."""


class ReportError(Exception):
    """Base class for errors that abort a report run."""

    pass
