"""Exception hierarchy for the extraction and comparison pipeline."""


class DevProposalsError(Exception):
    """Base class for every error raised by the pipeline."""


# ---------- Text extraction ----------
class ExtractionError(DevProposalsError):
    """A document could not be turned into text."""


class DocumentNotFoundError(ExtractionError, FileNotFoundError):
    """Local file missing, or the remote host answered 404."""


class DocumentFetchError(ExtractionError):
    """Remote document could not be downloaded."""


class HostUnreachableError(DocumentFetchError):
    """DNS lookup for the document host failed."""


class ConnectionRefusedByHostError(DocumentFetchError):
    """The document host refused the connection."""


class DocumentDecodeError(ExtractionError):
    """The decoder for the file type failed."""


# ---------- Inference ----------
class InferenceError(DevProposalsError):
    """The LLM provider call failed or returned nothing usable."""


class MissingAPIKeyError(InferenceError):
    pass


class EmptyCompletionError(InferenceError):
    pass


# ---------- Validation ----------
class MalformedResponseError(DevProposalsError):
    """No JSON object could be located in a completion."""


class UntrustedReferenceError(DevProposalsError):
    """A client-supplied document reference points outside the uploads area."""


class NoProposalsError(DevProposalsError):
    """A comparison was requested for a project without proposals."""
