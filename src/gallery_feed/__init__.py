"""Gallery Feed - Generate the Atom feed of a private Visual Studio extension gallery.

The gallery is a folder whose subfolders are categories holding ``.vsix``
packages. Every package's ``extension.vsixmanifest`` is read straight out of the
zip archive and listed as one Atom entry in ``atom.xml`` at the gallery root.

Programmatic API Example:
    >>> import gallery_feed
    >>>
    >>> cfg = gallery_feed.Config(gallery_path="/srv/gallery")
    >>> count, summary = gallery_feed.run_pipeline(cfg)
    >>> print(summary)

Reading a single entry out of a package:
    >>> from gallery_feed import resolver
    >>> with resolver.resolve("vsix:/srv/gallery/Tools/x.vsix!/extension.vsixmanifest") as s:
    ...     data = s.read()

CLI Usage:
    $ gallery-feed /srv/gallery
    $ python -m gallery_feed.cli --config gallery.yaml
"""

from __future__ import annotations

__version__ = "1.0.0"

from .config import Config, load_config_file  # noqa: E402
from .workflow import generate_feed, run_pipeline  # noqa: E402

__all__ = [
    "Config",
    "load_config_file",
    "generate_feed",
    "run_pipeline",
    "cli",
    "__version__",
]


# Lazily loaded submodules, cached after first access
_import_cache: dict[str, object] = {}


def __getattr__(name: str):
    if name in _import_cache:
        return _import_cache[name]

    if name == "cli":
        import importlib

        _cli = importlib.import_module(f"{__name__}.cli")
        _import_cache[name] = _cli
        return _cli
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
