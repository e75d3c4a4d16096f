"""Exceptions raised by the import pipeline."""


class ImportInputError(ValueError):
    """Raised when an upload or its accompanying form data cannot be used."""


class ImportAlreadyCommittedError(Exception):
    """Raised when the same file content was already committed for an entity."""

    def __init__(self, entity: str, file_hash: str, message: str = None):
        self.entity = entity
        self.file_hash = file_hash
        self.message = message or (
            f"File has already been committed for entity '{entity}' "
            f"(hash {file_hash[:12]})."
        )
        super().__init__(self.message)


class CommitFailedError(Exception):
    """Raised after a commit transaction was rolled back."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
