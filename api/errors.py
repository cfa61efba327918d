class ValidationError(ValueError):
    """A precondition for enqueueing is missing. The job is never created."""


class VerifyMismatch(Exception):
    """The write looked successful but verify() found nothing usable at the path."""

    friendly = "Uploaded but verify failed"

    def __init__(self, path: str):
        super().__init__(f"{self.friendly}: {path}")
        self.path = path


class JobNotFound(KeyError):
    pass


class InvalidTransition(Exception):
    pass
