"""Served-project layout helpers.

Works out which index page the readiness probe should request and warns
when the build output is older than its sources. Neither helper touches the
server; they only hand the lifecycle a URL path.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Optional

from withserver.core.config.domains import LayoutConfig
from withserver.core.exceptions import BuildNotFoundError, IndexNotFoundError

logger = logging.getLogger(__name__)

Callback = Callable[[str], None]


def _noop(_: str) -> None:
    return None


def newest_mtime(path: Path) -> float:
    """Newest modification time of ``path`` and everything below it.

    Directories that cannot be listed are skipped.
    """
    newest = path.stat().st_mtime
    if not path.is_dir():
        return newest
    try:
        entries = list(os.scandir(path))
    except OSError as exc:
        logger.debug("Skipping unreadable directory %s: %s", path, exc)
        return newest
    for entry in entries:
        child = Path(entry.path)
        try:
            if entry.is_dir(follow_symlinks=False):
                mtime = newest_mtime(child)
            else:
                mtime = entry.stat().st_mtime
        except OSError as exc:
            logger.debug("Skipping unreadable entry %s: %s", child, exc)
            continue
        newest = max(newest, mtime)
    return newest


def check_build_freshness(
    root: Path,
    layout: LayoutConfig,
    *,
    warn: Callback = _noop,
) -> Optional[str]:
    """Return the first source location modified after the last build.

    Returns None when the build looks fresh or when the check cannot be
    performed (no build directory, unreadable files).
    """
    build_path = root / layout.build_dir / Path(layout.index_file).parent
    if not build_path.exists():
        return None
    try:
        build_time = build_path.stat().st_mtime
        for source in layout.sources:
            source_path = root / source
            if not source_path.exists():
                continue
            if newest_mtime(source_path) > build_time:
                warn("")
                warn("WARNING: Source files have been modified since the last build!")
                warn(f"   Location: {source}")
                warn("   Your tests may not reflect your latest code changes.")
                warn(f'   Run "{layout.build_command}" to rebuild before testing.')
                warn("")
                return source
    except OSError as exc:
        logger.debug("Build freshness check skipped: %s", exc)
        return None
    return None


def detect_index_path(
    root: Path,
    layout: LayoutConfig,
    *,
    log: Callback = _noop,
    warn: Callback = _noop,
) -> str:
    """Resolve the URL path of the index page to probe.

    - Project root (sources and build dir present): the built copy under the
      build dir, which must exist.
    - Inside the build dir (no nested build dir): the index page itself.

    Raises:
        BuildNotFoundError: sources exist but the built index page is missing
        IndexNotFoundError: no index page in any expected location
    """
    root = Path(root)
    index_rel = Path(layout.index_file)
    index = root / index_rel
    build_dir = root / layout.build_dir

    if index.exists() and build_dir.exists():
        built = build_dir / index_rel
        if not built.exists():
            built_rel = (Path(layout.build_dir) / index_rel).as_posix()
            raise BuildNotFoundError(
                f"Build not found at {built_rel}. "
                f"Please build the app first with: {layout.build_command}. "
                f"The tests require the built version in {layout.build_dir}/",
                context={"expected": built_rel},
            )
        check_build_freshness(root, layout, warn=warn)
        url_path = "/" + (Path(layout.build_dir) / index_rel).as_posix()
        log(f"Running tests against: .{url_path} (built version)")
        return url_path

    if index.exists():
        url_path = "/" + index_rel.as_posix()
        log(f"Running tests against: .{url_path} (built version in {layout.build_dir})")
        return url_path

    raise IndexNotFoundError(
        f"Could not find {index_rel.as_posix()} in expected location. "
        "Make sure you run tests from the project root (after building) "
        f"or from the {layout.build_dir} directory",
        context={"root": str(root)},
    )


__all__ = ["newest_mtime", "check_build_freshness", "detect_index_path"]
