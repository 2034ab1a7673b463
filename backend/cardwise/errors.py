"""Application exceptions. Routers and the app's exception handlers map these to HTTP."""


class CardwiseError(Exception):
    """Base class for all Cardwise errors."""


class CardNotFoundError(CardwiseError):
    """The flashcard does not exist or belongs to another user."""


class ReviewConflictError(CardwiseError):
    """The card changed between read and write on every retry attempt."""


class StorageUnavailableError(CardwiseError):
    """The database could not be reached or refused the operation."""
