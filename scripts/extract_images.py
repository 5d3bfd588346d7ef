#!/usr/bin/env python3
"""
Batch extraction of a folder of profile screenshots.

Queues every image in a directory, runs one sequential batch through the
Vision LLM and writes the Excel export next to the screenshots.

Usage:
    python scripts/extract_images.py <image_directory> [output.xlsx]

Environment variables:
    OPENAI_API_KEY - Required for VLM extraction
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lead_extractor.clients import VisionClient
from lead_extractor.export import EXPORT_FILENAME, export_to_excel, project_rows
from lead_extractor.extractors import ProfileExtractor
from lead_extractor.pipeline import print_progress, print_run_summary, process_images_sync

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif", ".heic"}


def find_images(image_dir: Path) -> list[Path]:
    """List screenshots in a directory, sorted by name."""
    return sorted(
        path for path in image_dir.iterdir()
        if path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS
    )


def main() -> int:
    if len(sys.argv) < 2:
        print(__doc__)
        return 1

    image_dir = Path(sys.argv[1])
    if not image_dir.is_dir():
        print(f"ERROR: Directory not found: {image_dir}")
        return 1

    output_path = Path(sys.argv[2]) if len(sys.argv) > 2 else image_dir / EXPORT_FILENAME

    images = find_images(image_dir)
    if not images:
        print(f"ERROR: No images found in {image_dir}")
        return 1

    print(f"Processing {len(images)} screenshot(s) from {image_dir}\n")
    try:
        extractor = ProfileExtractor(client=VisionClient())
    except ValueError as e:
        # Missing API key
        print(f"ERROR: {e}")
        return 1

    store, result = process_images_sync(
        images, extractor=extractor, progress_callback=print_progress
    )
    print_run_summary(result)

    rows = project_rows(store)
    output_path.write_bytes(export_to_excel(rows))
    print(f"Wrote {len(rows)} row(s) to {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
