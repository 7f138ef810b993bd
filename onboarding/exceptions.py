"""Exceptions raised by the onboarding stages and their collaborators."""

from typing import Optional

from .policy import ErrorKind


class OnboardingError(RuntimeError):
    """Base for failures that a stage reports to the worker boundary."""

    kind = ErrorKind.FAULT


class MalformedEvent(OnboardingError):
    """A required event field is missing or has the wrong type."""

    kind = ErrorKind.MALFORMED_EVENT


class NotFound(OnboardingError):
    """A referenced organization, vault or key does not exist."""

    kind = ErrorKind.NOT_FOUND


class PreconditionUnmet(OnboardingError):
    """A required attribute cannot be resolved yet."""

    kind = ErrorKind.PRECONDITION_UNMET

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        super(PreconditionUnmet, self).__init__(
            message or f'failed to resolve {field}'
        )


class CollaboratorFailure(OnboardingError):
    """A call to an external collaborator failed."""

    kind = ErrorKind.COLLABORATOR_FAILURE


class TokenIssuanceFailed(CollaboratorFailure):
    """Could not mint a service token."""


class VaultError(CollaboratorFailure):
    """The vault service could not complete a request."""


class LedgerError(CollaboratorFailure):
    """The ledger service could not complete a request."""


class BroadcastFailed(LedgerError):
    """A contract execution transaction failed to broadcast."""

    kind = ErrorKind.BROADCAST_FAILURE


class PublishFailed(CollaboratorFailure):
    """An event could not be handed to the broker."""


class DatastoreError(CollaboratorFailure):
    """There was a problem reading from or writing to the datastore."""


class UnsupportedCapability(OnboardingError):
    """A collaborator does not offer a capability that the stage needs."""

    kind = ErrorKind.UNSUPPORTED_CAPABILITY
