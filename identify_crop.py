"""
Identify the crop in one or more images from the command line
Usage: python identify_crop.py <image path or URL> [...]
"""
import asyncio
import logging
import sys

from cropid.classifier import create_classifier
from cropid.config import CLASSIFIER_BACKEND, LOG_LEVEL
from cropid.resolver import CropIdentificationResolver

logging.basicConfig(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO))


async def main(image_refs):
    resolver = CropIdentificationResolver(create_classifier(CLASSIFIER_BACKEND))

    print("=" * 70)
    print("CROP IDENTIFICATION")
    print("=" * 70)
    for image_ref in image_refs:
        result = await resolver.identify(image_ref)
        print(f"\n📷 Image: {image_ref}")
        print(f"   Crop: {result.crop_name} ({result.crop_id})")
        print(f"   Confidence: {result.confidence * 100:.1f}%")
        if resolver.last_error:
            print(f"   ⚠️  {resolver.last_error}")
    print("\n" + "=" * 70)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1:]))
