"""
Configuration and constants for the Crop Identification service
"""
import os
from pathlib import Path

# Paths
PROJECT_ROOT = Path(__file__).parent.parent
LOG_DIR = PROJECT_ROOT / "logs"
IDENTIFICATION_LOG = LOG_DIR / "identifications.jsonl"

# Classifier backend: "keras" runs an ImageNet model locally, "remote" posts to an inference endpoint
CLASSIFIER_BACKEND = os.environ.get("CLASSIFIER_BACKEND", "keras")

# Local ImageNet model (keras.applications name)
CLASSIFIER_MODEL = os.environ.get("CLASSIFIER_MODEL", "MobileNetV2")
CLASSIFIER_IMAGE_SIZES = {
    "MobileNetV2": (224, 224),
    "EfficientNetB0": (224, 224),
    "ResNet50": (224, 224),
    "InceptionV3": (299, 299),
}
CLASSIFIER_TOP_K = int(os.environ.get("CLASSIFIER_TOP_K", "5"))

# Execution hints - only affect speed, never the output contract
CLASSIFIER_DEVICE = os.environ.get("CLASSIFIER_DEVICE", "gpu")   # gpu or cpu
CLASSIFIER_DTYPE = os.environ.get("CLASSIFIER_DTYPE", "float32")  # float32 or float16

# Remote inference endpoint (Hugging Face inference API response shape)
REMOTE_CLASSIFIER_URL = os.environ.get(
    "REMOTE_CLASSIFIER_URL",
    "https://api-inference.huggingface.co/models/google/vit-base-patch16-224",
)
REMOTE_CLASSIFIER_TOKEN = os.environ.get("REMOTE_CLASSIFIER_TOKEN")
REMOTE_REQUEST_TIMEOUT = 30  # seconds, per HTTP request

# No timeout on the classifier call unless explicitly configured
_timeout = os.environ.get("CLASSIFIER_TIMEOUT")
CLASSIFIER_TIMEOUT = float(_timeout) if _timeout else None

# Supported crops, in declaration order. The first entry is the fallback identity.
CROP_CATEGORIES = [
    ("alface", "Alface"),
    ("mandioca", "Mandioca"),
    ("tomate", "Tomate"),
    ("cenoura", "Cenoura"),
    ("milho", "Milho"),
]

# Classifier label phrase -> crop id. Order matters: the first contained key wins.
LABEL_KEYS = [
    ("lettuce", "alface"),
    ("cabbage", "alface"),
    ("leafy green", "alface"),
    ("cassava", "mandioca"),
    ("sweet potato", "mandioca"),
    ("tomato", "tomate"),
    ("red pepper", "tomate"),
    ("carrot", "cenoura"),
    ("orange vegetable", "cenoura"),
    ("corn", "milho"),
    ("maize", "milho"),
    ("ear", "milho"),
]

# Confidence reported when nothing better than the fallback was found
FALLBACK_CONFIDENCE = 0.3
FALLBACK_MESSAGE = "Could not identify the crop. Using the default identification."

# Only the most recent identify() call updates observable state when enabled
SUPPRESS_STALE_RESULTS = os.environ.get("SUPPRESS_STALE_RESULTS", "false").lower() in ("true", "on", "1")

# API configuration
API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "8000"))
API_RELOAD = False
API_VERSION = "1.0.0"

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
