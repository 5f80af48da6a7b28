import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from asmr_studio.core.config import ROOT_DIR, get_settings
from asmr_studio.core.errors import AppError
from asmr_studio.services.media_service import upload_sample_videos
from asmr_studio.services.storage_service import R2Storage


def main() -> int:
    ap = argparse.ArgumentParser(description="Publish sample .mp4 videos (plus thumbnails) to R2")
    ap.add_argument("--dir", default=str(ROOT_DIR / "public" / "videos"), help="directory holding the .mp4 files")
    ap.add_argument("--out", default="", help="write the resulting video list as JSON to this file")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    settings = get_settings()
    storage = R2Storage(settings.storage)
    try:
        videos = asyncio.run(upload_sample_videos(storage, Path(args.dir), settings.media))
    except AppError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    data = json.dumps(videos, indent=2)
    if args.out:
        Path(args.out).write_text(data + "\n", encoding="utf-8")
        print(f"Wrote {len(videos)} videos to {args.out}")
    else:
        print(data)
    return 0 if videos else 1


if __name__ == "__main__":
    raise SystemExit(main())
