"""
Image classifier collaborators

The resolver only needs ``await classifier.classify(image_ref)`` returning an
ordered list of ``{"label": str, "score": float}``. Two implementations are
provided: a local keras.applications ImageNet model and a remote HTTP
inference endpoint.
"""
import asyncio
import base64
import logging
import threading
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Protocol, Union

import keras
import numpy as np
import requests
import tensorflow as tf
from PIL import Image, UnidentifiedImageError

from cropid.config import (
    CLASSIFIER_BACKEND, CLASSIFIER_DEVICE, CLASSIFIER_DTYPE, CLASSIFIER_IMAGE_SIZES,
    CLASSIFIER_MODEL, CLASSIFIER_TOP_K, REMOTE_CLASSIFIER_TOKEN, REMOTE_CLASSIFIER_URL,
    REMOTE_REQUEST_TIMEOUT,
)
from cropid.errors import ClassifierUnavailableError, InferenceError, MalformedResponseError

logger = logging.getLogger(__name__)

ImageRef = Union[bytes, bytearray, str, Path]

# keras.applications submodule holding preprocess_input / decode_predictions
APPLICATION_MODULES = {
    "MobileNetV2": "mobilenet_v2",
    "EfficientNetB0": "efficientnet",
    "ResNet50": "resnet50",
    "InceptionV3": "inception_v3",
}


class Classifier(Protocol):
    name: str

    async def classify(self, image_ref: ImageRef) -> List[Dict[str, Any]]:
        ...


URL_SCHEMES = ("http://", "https://", "data:")


def is_image_url(ref: str) -> bool:
    """True for the URL forms a client may hand to the API (http(s) and data:)."""
    return ref.startswith(URL_SCHEMES)


def load_url_bytes(url: str) -> bytes:
    """Fetch an http(s) URL or decode a base64 data: URL; never touches the filesystem."""
    if url.startswith("data:"):
        header, _, payload = url.partition(",")
        if ";base64" not in header:
            raise ValueError("Only base64 data URLs are supported")
        return base64.b64decode(payload)
    if url.startswith(("http://", "https://")):
        response = requests.get(url, timeout=REMOTE_REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.content
    raise ValueError(f"Unsupported image URL: {url[:40]!r}")


def load_image_bytes(image_ref: ImageRef) -> bytes:
    """
    Resolve an image reference to raw bytes

    Args:
        image_ref: raw bytes, a data: URL, an http(s) URL or a file path

    Returns:
        Encoded image bytes
    """
    if isinstance(image_ref, (bytes, bytearray)):
        return bytes(image_ref)

    ref = str(image_ref)
    if is_image_url(ref):
        return load_url_bytes(ref)
    return Path(ref).read_bytes()


class KerasImageNetClassifier:
    """
    ImageNet classifier built from keras.applications

    The model is loaded lazily on the first call so the API starts fast.
    """

    def __init__(self, model_name=CLASSIFIER_MODEL, top_k=CLASSIFIER_TOP_K,
                 device=CLASSIFIER_DEVICE, dtype=CLASSIFIER_DTYPE):
        if model_name not in APPLICATION_MODULES:
            raise ValueError(f"Unsupported classifier model: {model_name}")
        if dtype not in ("float32", "float16"):
            raise ValueError(f"Unsupported dtype: {dtype}")
        self.name = model_name
        self.top_k = top_k
        self.device = device
        self.dtype = dtype
        self.image_size = CLASSIFIER_IMAGE_SIZES.get(model_name, (224, 224))
        self._app_module = None
        self._model = None
        self._lock = threading.Lock()

    def _device_name(self):
        if self.device == "gpu":
            if tf.config.list_physical_devices("GPU"):
                return "/GPU:0"
            logger.warning("GPU acceleration requested but not available, using CPU")
        return "/CPU:0"

    def _load(self):
        with self._lock:
            if self._model is not None:
                return
            logger.info(f"Loading {self.name} ImageNet classifier ({self.dtype})...")
            previous_policy = keras.mixed_precision.global_policy()
            try:
                # The dtype policy is process-wide; only hold it while building this model
                if self.dtype == "float16":
                    keras.mixed_precision.set_global_policy("mixed_float16")
                self._app_module = getattr(keras.applications, APPLICATION_MODULES[self.name])
                with tf.device(self._device_name()):
                    self._model = getattr(keras.applications, self.name)(weights="imagenet")
            except Exception as e:
                raise ClassifierUnavailableError(f"Could not load {self.name}: {e}") from e
            finally:
                keras.mixed_precision.set_global_policy(previous_policy)
            logger.info(f"✓ {self.name} classifier loaded")

    def preprocess(self, contents: bytes) -> np.ndarray:
        """Decode, convert to RGB and resize to the model input size."""
        try:
            img = Image.open(BytesIO(contents))
        except UnidentifiedImageError as e:
            raise InferenceError(f"Unreadable image: {e}") from e
        if img.mode != "RGB":
            img = img.convert("RGB")
        img = img.resize(self.image_size, Image.Resampling.BILINEAR)
        img_array = np.array(img, dtype=np.float32)
        return self._app_module.preprocess_input(np.expand_dims(img_array, axis=0))

    def _classify_sync(self, image_ref: ImageRef) -> List[Dict[str, Any]]:
        self._load()
        batch = self.preprocess(load_image_bytes(image_ref))
        with tf.device(self._device_name()):
            predictions = self._model.predict(batch, verbose=0)
        decoded = self._app_module.decode_predictions(np.asarray(predictions, dtype=np.float32), top=self.top_k)[0]
        # ImageNet names use underscores ("head_cabbage")
        return [
            {"label": name.replace("_", " "), "score": float(score)}
            for _, name, score in decoded
        ]

    async def classify(self, image_ref: ImageRef) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._classify_sync, image_ref)


class RemoteClassifier:
    """Posts the image to an HTTP image-classification endpoint."""

    def __init__(self, url=REMOTE_CLASSIFIER_URL, token=REMOTE_CLASSIFIER_TOKEN,
                 timeout=REMOTE_REQUEST_TIMEOUT, session=None):
        self.name = url
        self.url = url
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _classify_sync(self, image_ref: ImageRef) -> List[Dict[str, Any]]:
        headers = {"Content-Type": "application/octet-stream"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.session.post(
            self.url, data=load_image_bytes(image_ref), headers=headers, timeout=self.timeout
        )
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Non-JSON response from {self.url}") from e
        if isinstance(payload, dict) and "error" in payload:
            raise ClassifierUnavailableError(str(payload["error"]))
        return payload

    async def classify(self, image_ref: ImageRef) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._classify_sync, image_ref)


def create_classifier(backend=CLASSIFIER_BACKEND) -> Classifier:
    if backend == "keras":
        return KerasImageNetClassifier()
    if backend == "remote":
        return RemoteClassifier()
    raise ValueError(f"Unknown classifier backend: {backend}")
