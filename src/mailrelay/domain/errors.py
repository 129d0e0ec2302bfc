"""Domain-specific exception classes for the mail relay."""


class RelayError(Exception):
    """Base class for all domain errors in the mail relay."""


class MailCommunicationError(RelayError):
    """Raised when a Gmail API call fails after all retries."""


class InvalidMailResponseError(RelayError):
    """Raised when the Gmail API returns a response that cannot be used."""


class ThreadIntegrityError(RelayError):
    """Raised when a thread mutation would break a linear reply chain.

    Attributes:
        message_id: The Message-ID that could not be placed.
    """

    def __init__(self, message_id: str, reason: str) -> None:
        self.message_id = message_id
        super().__init__(f"Cannot place message '{message_id}': {reason}")


class ForwardingError(RelayError):
    """Base class for failures while posting to the chat webhook."""


class WebhookResponseError(ForwardingError):
    """Raised when the webhook answers with a non-success status code.

    Attributes:
        status_code: The HTTP status code returned by the webhook.
    """

    def __init__(self, status_code: int, reason: str) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP status code {status_code}: {reason}")


class InvalidWebhookResponseError(ForwardingError):
    """Raised when a successful webhook response has an unusable body."""
