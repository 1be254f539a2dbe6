"""
Crop identification resolver

Runs one classifier call per image, maps its open-vocabulary labels onto the
supported crops and always settles with an IdentificationResult. Classifier
failures degrade to the fallback identity instead of propagating.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, List, Mapping, Optional

from cropid.categories import (
    DEFAULT_MAPPING, ClassifierObservation, IdentificationResult, LabelMapping,
    fallback_result, select_best,
)
from cropid.config import (
    CLASSIFIER_TIMEOUT, FALLBACK_CONFIDENCE, FALLBACK_MESSAGE, SUPPRESS_STALE_RESULTS,
)
from cropid.errors import ErrorInfo, MalformedResponseError, classify_error

logger = logging.getLogger(__name__)


class ResolverStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Resolution:
    """Outcome of one identification: a result, plus the error that forced the fallback if any."""

    result: IdentificationResult
    status: ResolverStatus
    error: Optional[ErrorInfo] = None

    @classmethod
    def resolved(cls, result):
        return cls(result, ResolverStatus.SUCCEEDED)

    @classmethod
    def degraded_fallback(cls, result, error):
        return cls(result, ResolverStatus.FAILED, error)

    @property
    def degraded(self) -> bool:
        return self.error is not None


def parse_observations(raw: Any) -> List[ClassifierObservation]:
    """
    Validate the classifier response into observations, keeping its order

    Accepts a list of mappings or objects exposing ``label`` and ``score``.
    Raises MalformedResponseError for anything else.
    """
    if raw is None or isinstance(raw, (str, bytes, Mapping)):
        raise MalformedResponseError(f"Expected a list of observations, got {type(raw).__name__}")
    try:
        items = list(raw)
    except TypeError as e:
        raise MalformedResponseError(f"Classifier response is not iterable: {e}") from e

    observations = []
    for index, item in enumerate(items):
        if isinstance(item, Mapping):
            label, score = item.get("label"), item.get("score")
        else:
            label, score = getattr(item, "label", None), getattr(item, "score", None)
        if not isinstance(label, str) or isinstance(score, bool) or not isinstance(score, Real):
            raise MalformedResponseError(f"Observation {index} has no usable label/score: {item!r}")
        if not 0.0 <= score <= 1.0:
            raise MalformedResponseError(f"Observation {index} score outside [0, 1]: {score!r}")
        observations.append(ClassifierObservation(label=label, score=float(score)))
    return observations


class CropIdentificationResolver:
    """
    Turns a classifier call into a single supported-crop identification

    ``resolve`` returns a per-call Resolution and is safe for concurrent
    callers. ``identify`` additionally publishes ``is_loading``, ``status``
    and ``last_error`` for a single consuming flow.
    """

    def __init__(self, classifier, mapping: LabelMapping = DEFAULT_MAPPING,
                 fallback_confidence: float = FALLBACK_CONFIDENCE,
                 timeout: Optional[float] = CLASSIFIER_TIMEOUT,
                 error_message: str = FALLBACK_MESSAGE,
                 suppress_stale: bool = SUPPRESS_STALE_RESULTS):
        self.classifier = classifier
        self.mapping = mapping
        self.fallback_confidence = fallback_confidence
        self.timeout = timeout
        self.error_message = error_message
        self.suppress_stale = suppress_stale

        self.is_loading = False
        self.last_error: Optional[str] = None
        self.status = ResolverStatus.IDLE
        self._generation = 0
        self._in_flight = 0

    def fallback(self) -> IdentificationResult:
        return fallback_result(self.mapping, self.fallback_confidence)

    async def _classify(self, image_ref):
        call = self.classifier.classify(image_ref)
        if self.timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.timeout)

    async def resolve(self, image_ref) -> Resolution:
        try:
            raw = await self._classify(image_ref)
            observations = parse_observations(raw)
            logger.debug(f"Classifier returned {len(observations)} observations: {observations}")
            result = select_best(observations, self.mapping, self.fallback_confidence)
        except Exception as e:
            error = classify_error(e, self.error_message)
            logger.error(f"Crop identification failed ({error.kind}): {e}", exc_info=True)
            return Resolution.degraded_fallback(self.fallback(), error)

        logger.info(f"✓ Identified crop: {result.crop_id} ({result.confidence:.1%})")
        return Resolution.resolved(result)

    async def identify(self, image_ref) -> IdentificationResult:
        self._generation += 1
        generation = self._generation
        self._in_flight += 1
        self.is_loading = True
        self.status = ResolverStatus.RUNNING
        self.last_error = None
        try:
            resolution = await self.resolve(image_ref)
            if self.suppress_stale and generation != self._generation:
                logger.info("Discarding state update from a superseded identification")
            else:
                self.status = resolution.status
                self.last_error = resolution.error.message if resolution.degraded else None
            return resolution.result
        finally:
            self._in_flight -= 1
            if not self.suppress_stale or self._in_flight == 0:
                self.is_loading = False
