"""Exception hierarchy for extraction, merging, resolution and deployment."""

from typing import Optional, Sequence


class BundlerError(Exception):
    """Base class for every error raised by the bundler."""


class ExtractionError(BundlerError):
    """Reading or parsing a game or mod file failed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Error while extracting data from {path}: {reason}")


class ApplyError(BundlerError):
    """A patch references a path the record type does not recognize."""

    def __init__(self, record_id: str, path: Sequence[str], reason: str) -> None:
        self.record_id = record_id
        self.path = tuple(path)
        self.reason = reason
        super().__init__(
            f"Cannot apply patch to {record_id} at {' / '.join(self.path)}: {reason}"
        )


class StructuralMismatchError(ApplyError):
    """The value kind in a patch is incompatible with the record at that path."""


class MalformedChainError(BundlerError):
    """An ordered collection could not be decoded from its successor facts."""

    def __init__(self, record_id: str, field: str, reason: str) -> None:
        self.record_id = record_id
        self.field = field
        self.reason = reason
        super().__init__(f"Malformed chain in {record_id}, field {field}: {reason}")


class SourceKindMismatchError(BundlerError):
    """The same file is binary in one place and structured in another."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"File kind mismatch on {path}: {reason}")


class UnresolvedConflictError(BundlerError):
    """Resolver output left a conflicted path without a decision.

    This is a defect in the resolver integration, never a user-facing condition.
    """

    def __init__(self, path: str, detail: Optional[str] = None) -> None:
        self.path = path
        self.detail = detail
        message = f"Conflict on {path} was not resolved"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ResolutionAborted(BundlerError):
    """The resolver was torn down while a decision was pending."""


class DeploymentError(BundlerError):
    """Writing the bundle to disk failed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Error while deploying bundle to {path}: {reason}")


# Errors that fail a single file while the rest of the bundle continues.
PER_FILE_ERRORS = (ApplyError, MalformedChainError, SourceKindMismatchError)
