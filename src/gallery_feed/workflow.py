"""Gallery scanning and feed generation pipeline."""

from __future__ import annotations

import collections
import functools
import logging
import os
import time
from typing import BinaryIO, Callable, Iterator, List, Optional, Tuple

from . import atom, config, config_constants, downloader, manifest, models, progress, resolver

logger = logging.getLogger(__name__)

ResolveFn = Callable[[str], BinaryIO]
GalleryItem = Tuple[str, str]


def apply_log_level(level: str, log_file: Optional[str] = None) -> None:
    """Apply logging level to root logger and configure handlers.

    Args:
        level: Log level string (e.g., 'DEBUG', 'INFO', 'WARNING')
        log_file: Optional path to log file. If provided, logs will be written to both
                  console and file.

    Raises:
        ValueError: If log level is invalid
        OSError: If log file cannot be created or written to
    """
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    root_logger = logging.getLogger()
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    if not root_logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers:
        handler.setLevel(numeric_level)

    if log_file:
        log_path = os.path.abspath(log_file)
        already_attached = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == log_path
            for h in root_logger.handlers
        )
        if not already_attached:
            os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)


def category_from_directory(directory: str) -> str:
    """Return the final path segment of ``directory`` (trailing separators ignored)."""
    return os.path.basename(directory.rstrip(os.sep + (os.altsep or "")))


def _list(path: str, *, dirs: bool, sort: bool) -> List[str]:
    with os.scandir(path) as it:
        if dirs:
            names = [e.path for e in it if e.is_dir()]
        else:
            names = [e.path for e in it if e.is_file()]
    if sort:
        names.sort(key=lambda p: os.path.basename(p))
    return names


def iter_gallery_archives(root: str, sort: bool = False) -> Iterator[GalleryItem]:
    """Yield ``(category, archive_path)`` for every file one level below ``root``.

    Categories are the immediate subdirectories of ``root``; only files placed
    directly inside a category are listed. Without ``sort`` the order is
    whatever the filesystem returns.
    """
    for directory in _list(root, dirs=True, sort=sort):
        category = category_from_directory(directory)
        for archive_path in _list(directory, dirs=False, sort=sort):
            yield category, archive_path


def build_entry(
    category: str, archive_path: str, metadata: models.ExtensionMetadata
) -> models.FeedEntry:
    """Map extension metadata into the feed entry for ``archive_path``."""
    file_name = os.path.basename(archive_path)
    return models.FeedEntry(
        id=metadata.id,
        title=models.TextConstruct(
            type=config_constants.TEXT_CONTENT_TYPE, text=metadata.display_name
        ),
        summary=models.TextConstruct(
            type=config_constants.TEXT_CONTENT_TYPE, text=metadata.description
        ),
        author=models.Author(name=metadata.publisher),
        category=models.Category(term=category),
        content=models.Content(
            type=config_constants.PACKAGE_CONTENT_TYPE, src=f"{category}/{file_name}"
        ),
        vsix=models.ExtensionReference(id=metadata.id, version=metadata.version),
    )


def _default_resolve_fn(cfg: config.Config) -> ResolveFn:
    fetch = functools.partial(
        downloader.open_remote, user_agent=cfg.user_agent, timeout=cfg.timeout
    )
    default_resolver = functools.partial(
        downloader.open_resource, user_agent=cfg.user_agent, timeout=cfg.timeout
    )
    return functools.partial(resolver.resolve, default_resolver=default_resolver, fetch=fetch)


def generate_feed(cfg: config.Config, resolve_fn: Optional[ResolveFn] = None) -> models.Feed:
    """Build the feed for every extension package under ``cfg.gallery_path``.

    Any failure aborts the whole run; no partial feed is returned.
    """
    resolve_fn = resolve_fn or _default_resolve_fn(cfg)
    items = list(iter_gallery_archives(cfg.gallery_path, sort=cfg.sort_entries))
    feed = models.Feed()

    with progress.scan_progress(len(items)) as scan:
        for category, archive_path in items:
            scan.package_started(f"{category}/{os.path.basename(archive_path)}")
            metadata = manifest.load_extension_metadata(archive_path, resolve_fn=resolve_fn)
            feed.entries.append(build_entry(category, archive_path, metadata))
            scan.package_finished()

    per_category = collections.Counter(entry.category.term for entry in feed.entries)
    for category, count in per_category.items():
        logger.info(f"  {category}: {count} extension(s)")
    logger.info(
        f"Collected {len(feed.entries)} extension(s) in {len(per_category)} category(ies)"
    )
    return feed


def remove_existing_feed(cfg: config.Config) -> bool:
    """Delete a previously generated ``atom.xml``; return True if one existed."""
    if os.path.isfile(cfg.feed_path):
        os.remove(cfg.feed_path)
        logger.debug(f"Removed existing feed {cfg.feed_path}")
        return True
    return False


def run_pipeline(
    cfg: config.Config, resolve_fn: Optional[ResolveFn] = None
) -> Tuple[int, str]:
    """Regenerate ``atom.xml`` for the gallery described by ``cfg``.

    The existing feed file is deleted before scanning starts, so a failed run
    leaves no feed behind.

    Returns:
        Tuple of (entry_count, summary_message)
    """
    start = time.monotonic()
    logger.info(f"Generating feed for gallery {cfg.gallery_path}")

    if not os.path.isdir(cfg.gallery_path):
        raise NotADirectoryError(f"Extension gallery path is not a directory: {cfg.gallery_path}")

    if cfg.dry_run:
        feed = generate_feed(cfg, resolve_fn=resolve_fn)
        summary = (
            f"Dry run complete: {len(feed.entries)} extension(s) would be written to "
            f"{cfg.feed_path}"
        )
        return len(feed.entries), summary

    remove_existing_feed(cfg)
    feed = generate_feed(cfg, resolve_fn=resolve_fn)
    atom.write_feed(feed, cfg.feed_path)

    elapsed = time.monotonic() - start
    summary = f"Wrote {len(feed.entries)} extension(s) to {cfg.feed_path} in {elapsed:.2f}s"
    return len(feed.entries), summary
