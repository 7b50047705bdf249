"""Progress hooks for the gallery scan.

``workflow.generate_feed`` announces each package before reading its manifest
and marks it finished afterwards. Nothing is displayed unless a frontend
installs a display with ``set_scan_display``; the CLI installs a tqdm bar.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, Optional, Protocol


class ScanProgress(Protocol):
    def package_started(self, label: str) -> None: ...

    def package_finished(self) -> None: ...


ScanDisplay = Callable[[int], ContextManager[ScanProgress]]


class _SilentScan:
    def package_started(self, label: str) -> None:  # pragma: no cover - trivial
        return None

    def package_finished(self) -> None:  # pragma: no cover - trivial
        return None


_scan_display: Optional[ScanDisplay] = None


def set_scan_display(display: Optional[ScanDisplay]) -> None:
    """Install the display used by later scans; ``None`` silences them."""
    global _scan_display
    _scan_display = display


def current_scan_display() -> Optional[ScanDisplay]:
    return _scan_display


@contextmanager
def scan_progress(package_count: int) -> Iterator[ScanProgress]:
    """Yield the progress sink for a scan over ``package_count`` packages."""
    if _scan_display is None:
        yield _SilentScan()
        return
    with _scan_display(package_count) as sink:
        yield sink
