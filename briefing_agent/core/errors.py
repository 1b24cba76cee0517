from __future__ import annotations


class BriefingError(Exception):
    """Base class for errors surfaced to the user as a short message."""


class NoContentError(BriefingError, ValueError):
    """Empty or whitespace-only text was handed to a collaborator call."""


class UnsupportedFileTypeError(BriefingError, ValueError):
    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(
            f"Unsupported file type '{extension or '(none)'}'. "
            "Please upload PDF, DOCX, TXT, or MD files."
        )


class ExtractionError(BriefingError, RuntimeError):
    """A document could not be turned into text."""


class CollaboratorError(BriefingError, RuntimeError):
    """The language model endpoint failed (network, HTTP status, bad payload)."""


class InvalidActionError(BriefingError, ValueError):
    def __init__(self, action_id: str, phase: str):
        self.action_id = action_id
        self.phase = phase
        super().__init__(f"Action '{action_id}' is not available in phase '{phase}'")


class InvalidTransitionError(BriefingError, ValueError):
    pass


class BusyError(BriefingError, RuntimeError):
    """A collaborator call is already outstanding for this session."""
