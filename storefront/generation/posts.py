"""Listing of generated post artifacts (served under /posts)."""

from __future__ import annotations

from pathlib import Path

ARTIFACT_SUFFIXES = (".png", ".mp4")
URL_PREFIX = "/posts"


def list_posts(posts_dir: Path) -> list[dict[str, str]]:
    """Generated images and videos in ``posts_dir``, sorted by file name."""
    files = sorted(
        p.name for p in Path(posts_dir).iterdir() if p.is_file() and p.suffix.lower() in ARTIFACT_SUFFIXES
    )
    return [{"file": name, "url": f"{URL_PREFIX}/{name}"} for name in files]
