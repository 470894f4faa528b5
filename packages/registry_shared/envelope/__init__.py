"""Public shared envelope API for registry components."""

from .builders import failure, success
from .envelope import Envelope
from .meta import EnvelopeKind, EnvelopeMeta, new_meta
from .payload import Payload
from .validate import validate_meta

__all__ = [
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "Payload",
    "failure",
    "new_meta",
    "success",
    "validate_meta",
]
