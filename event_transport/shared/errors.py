class TransportError(Exception):
    """Base class for errors raised by the event transport."""


class MalformedPayloadError(TransportError):
    """The consumer sent a body that is not the JSON object we expected."""
