"""
FastAPI backend for Crop Identification
Maps a photo of a plant to one of the supported crops, falling back to the
default crop when the classifier is unavailable or inconclusive
"""
import json
import logging
import time
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from cropid.classifier import create_classifier, is_image_url
from cropid.config import (
    API_HOST, API_PORT, API_RELOAD, API_VERSION, CLASSIFIER_BACKEND, CLASSIFIER_DEVICE,
    CLASSIFIER_DTYPE, CLASSIFIER_MODEL, CLASSIFIER_TIMEOUT, FALLBACK_CONFIDENCE,
    IDENTIFICATION_LOG, LOG_LEVEL,
)
from cropid.resolver import CropIdentificationResolver, Resolution

# Setup logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Crop Identification API",
    description="Identifies the crop in a plant photo from general image-classifier labels",
    version=API_VERSION
)

# Add CORS middleware for the capture frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# The classifier loads its model lazily on the first identification
resolver = CropIdentificationResolver(create_classifier(CLASSIFIER_BACKEND))


class IdentificationResponse(BaseModel):
    """Structured identification response"""
    cropId: str
    cropName: str
    confidence: float
    degraded: bool
    error: Optional[str] = None
    errorKind: Optional[str] = None


class UrlRequest(BaseModel):
    url: str


class CropInfo(BaseModel):
    id: str
    name: str


class CropsResponse(BaseModel):
    crops: List[CropInfo]
    fallback: str


def log_identification_event(payload: Dict[str, Any]) -> None:
    """Persist lightweight identification metadata for observability."""
    record = {"timestamp": time.time(), **payload}
    try:
        IDENTIFICATION_LOG.parent.mkdir(exist_ok=True)
        with IDENTIFICATION_LOG.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")
    except Exception as exc:
        logger.warning(f"Failed to write identification log: {exc}")


async def run_identification(image_ref) -> IdentificationResponse:
    """Resolve one image and build the response (never raises on classifier failure)."""
    start_time = time.perf_counter()
    resolution: Resolution = await resolver.resolve(image_ref)
    latency_ms = (time.perf_counter() - start_time) * 1000

    result = resolution.result
    error_kind = resolution.error.kind if resolution.degraded else None
    log_identification_event({
        "crop_id": result.crop_id,
        "confidence": result.confidence,
        "degraded": resolution.degraded,
        "error_kind": error_kind,
        "latency_ms": latency_ms,
    })
    logger.info(f"Identification: {result.crop_id} ({result.confidence:.1%}) | latency {latency_ms:.1f} ms")

    return IdentificationResponse(
        **result.to_dict(),
        degraded=resolution.degraded,
        error=resolution.error.message if resolution.degraded else None,
        errorKind=error_kind,
    )


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "classifier": getattr(resolver.classifier, "name", type(resolver.classifier).__name__),
    }


@app.get("/crops", response_model=CropsResponse)
async def get_crops():
    """Supported crops, in declaration order"""
    return CropsResponse(
        crops=[CropInfo(id=c.id, name=c.display_name) for c in resolver.mapping.categories],
        fallback=resolver.mapping.fallback.id,
    )


@app.get("/info")
async def get_info():
    """Get API and classifier information"""
    return {
        "name": "Crop Identification API",
        "version": API_VERSION,
        "backend": CLASSIFIER_BACKEND,
        "model": CLASSIFIER_MODEL,
        "device": CLASSIFIER_DEVICE,
        "dtype": CLASSIFIER_DTYPE,
        "fallback_confidence": FALLBACK_CONFIDENCE,
        "timeout": CLASSIFIER_TIMEOUT,
    }


@app.post("/identify", response_model=IdentificationResponse)
async def identify(image: UploadFile = File(...)):
    """
    Identify the crop in an uploaded photo

    Endpoint: POST /identify
    Input:
        - image: MultiPart form image file

    Output:
        - cropId / cropName: Supported crop (the default crop when degraded)
        - confidence: Classifier score of the matched label, 0.3 for the fallback
        - degraded: True when a classifier failure forced the fallback
        - error: Advisory message to show the user, never blocking
    """
    contents = await image.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    return await run_identification(contents)


@app.post("/identify/url", response_model=IdentificationResponse)
async def identify_url(request: UrlRequest):
    """Identify the crop in an image referenced by URL (http(s) or data:)"""
    if not request.url.strip():
        raise HTTPException(status_code=400, detail="Missing image URL")
    if not is_image_url(request.url.strip()):
        raise HTTPException(status_code=400, detail="Only http(s):// and data: image URLs are accepted")
    return await run_identification(request.url.strip())


if __name__ == "__main__":
    print("=" * 70)
    print("CROP IDENTIFICATION API")
    print("=" * 70)
    print(f"Starting server on {API_HOST}:{API_PORT}")
    print(f"API docs: http://localhost:{API_PORT}/docs")
    print("=" * 70)

    uvicorn.run(
        app,
        host=API_HOST,
        port=API_PORT,
        reload=API_RELOAD
    )
