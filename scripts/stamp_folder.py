"""
Stamp Folder - batch stamping without the web API

Reads every JPEG/PNG in a folder, runs the same read -> geocode -> draw
pipeline the API uses, and writes the stamped copies under their suggested
filenames.
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import List

from photostamp.config import settings
from photostamp.main import configure_logging
from photostamp.models import PhotoTask
from photostamp.services.stamp_pipeline import build_pipeline, run_batch
from photostamp.services.state_machine import ProcessingStatus


SUPPORTED_IMAGE_EXTS = {".jpg", ".jpeg", ".png"}


def list_image_files(folder: Path) -> List[Path]:
    return sorted([p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_IMAGE_EXTS])


def _unique_path(path: Path) -> Path:
    n = 1
    candidate = path
    while candidate.exists():
        candidate = path.with_name(f"{path.stem}_{n}{path.suffix}")
        n += 1
    return candidate


def stamp_folder(input_dir: Path, output_dir: Path, location_url: str | None = None) -> int:
    input_dir = input_dir.resolve()
    output_dir = output_dir.resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    image_paths = list_image_files(input_dir)
    if not image_paths:
        raise SystemExit(f"No images found in: {input_dir}")

    cfg = dataclasses.replace(settings, location_service_url=location_url) if location_url else settings
    pipeline = build_pipeline(cfg)
    tasks = [PhotoTask(filename=p.name, data=p.read_bytes()) for p in image_paths]
    run_batch(pipeline, tasks, max_workers=cfg.max_workers)

    failures = 0
    for task in tasks:
        if task.status is ProcessingStatus.READY and task.result_image is not None:
            out_path = _unique_path(output_dir / task.suggested_filename)
            out_path.write_bytes(task.result_image.data)
            print(f"Saved: {task.filename} -> {out_path}")
        else:
            failures += 1
            print(f"Failed: {task.filename}: {task.error_message}", file=sys.stderr)
    return failures


def main():
    parser = argparse.ArgumentParser(description="Stamp photos with the place and date they were taken")
    parser.add_argument("--input", required=True, help="Folder containing JPEG/PNG photos")
    parser.add_argument("--output", required=True, help="Folder for the stamped copies")
    parser.add_argument("--location-url", default=None, help="Base URL of a running PhotoStamp API to resolve places through")
    args = parser.parse_args()

    configure_logging(settings.log_level)
    failures = stamp_folder(Path(args.input), Path(args.output), location_url=args.location_url)
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
