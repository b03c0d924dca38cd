"""Work queue exceptions."""


class QueueError(Exception):
    """Base exception for queue service failures.

    Raised from dequeue or promotion this is an invocation-level failure: the
    trigger reports it instead of processing a batch.
    """


class QueueUnavailableError(QueueError):
    """The backing store for the queue could not be reached."""
