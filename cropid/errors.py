"""
Classifier failure types and their classification for display
"""
import asyncio
from dataclasses import dataclass

import requests

from cropid.config import FALLBACK_MESSAGE

UNAVAILABLE = "unavailable"
INFERENCE = "inference"
MALFORMED = "malformed"
TIMEOUT = "timeout"


class ClassifierError(Exception):
    """Base class for failures of the image classifier."""


class ClassifierUnavailableError(ClassifierError):
    """Model, acceleration backend or remote endpoint could not be reached."""


class InferenceError(ClassifierError):
    """Model ran but could not produce predictions for the image."""


class MalformedResponseError(ClassifierError):
    """Classifier answered with something that is not a list of (label, score)."""


@dataclass(frozen=True)
class ErrorInfo:
    kind: str
    message: str


def classify_error(exc: BaseException, message: str = FALLBACK_MESSAGE) -> ErrorInfo:
    """Map an exception raised while identifying a crop to an ErrorInfo."""
    # requests raises ValueError subclasses (InvalidURL, MissingSchema) for a bad endpoint
    if isinstance(exc, MalformedResponseError):
        kind = MALFORMED
    elif isinstance(exc, asyncio.TimeoutError):
        kind = TIMEOUT
    elif isinstance(
        exc,
        (ClassifierUnavailableError, requests.RequestException, ImportError, OSError, ConnectionError),
    ):
        kind = UNAVAILABLE
    elif isinstance(exc, (TypeError, ValueError, KeyError)):
        kind = MALFORMED
    else:
        kind = INFERENCE
    return ErrorInfo(kind=kind, message=message)
