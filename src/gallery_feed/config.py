"""Run configuration: the Config model and JSON/YAML config file loading."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import config_constants


def _is_test_environment() -> bool:
    """Check if we're running in a test environment."""
    import sys

    if "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ:
        return True
    if os.environ.get("TESTING", "").lower() in ("1", "true", "yes"):
        return True
    return False


# Environment overrides may live in a .env file in the working directory.
# Tests set environment variables directly instead.
if not _is_test_environment():
    try:
        load_dotenv(override=False)
    except (PermissionError, OSError):
        pass

DEFAULT_LOG_LEVEL = config_constants.DEFAULT_LOG_LEVEL
DEFAULT_TIMEOUT_SECONDS = config_constants.DEFAULT_TIMEOUT_SECONDS
DEFAULT_USER_AGENT = config_constants.DEFAULT_USER_AGENT
MIN_TIMEOUT_SECONDS = config_constants.MIN_TIMEOUT_SECONDS
VALID_LOG_LEVELS = config_constants.VALID_LOG_LEVELS
FEED_FILENAME = config_constants.FEED_FILENAME
MANIFEST_FILENAME = config_constants.MANIFEST_FILENAME


def _env_value(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip() or None


class Config(BaseModel):
    """Configuration model for one feed generation run.

    Values given explicitly win over ``GALLERY_FEED_*`` environment variables,
    which win over the built-in defaults. The model is frozen after creation.

    Attributes:
        gallery_path: Root of the extension gallery; ``atom.xml`` is written here.
            Defaults to the current working directory.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional log file path in addition to console output.
        user_agent: HTTP User-Agent header used when a package lives behind a URL.
        timeout: Request timeout in seconds for remote packages (minimum: 1).
        sort_entries: Sort categories and packages by name instead of keeping the
            order the filesystem lists them in.
        dry_run: Build the feed but neither delete nor write ``atom.xml``.
        show_progress: Display a progress bar while packages are processed.
    """

    gallery_path: str = Field(default_factory=os.getcwd)
    log_level: str = Field(default=None, validate_default=True)  # type: ignore[assignment]
    log_file: Optional[str] = None
    user_agent: str = Field(default=None, validate_default=True)  # type: ignore[assignment]
    timeout: int = Field(default=None, validate_default=True)  # type: ignore[assignment]
    sort_entries: bool = False
    dry_run: bool = False
    show_progress: bool = True

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("gallery_path", mode="before")
    @classmethod
    def _normalize_gallery_path(cls, value: Any) -> str:
        if value is None:
            return os.getcwd()
        value_str = str(value).strip()
        if not value_str:
            return os.getcwd()
        return os.path.abspath(Path(value_str).expanduser())

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        """Normalize log level, falling back to the environment then the default."""
        if value is None or not str(value).strip():
            value = _env_value(config_constants.ENV_LOG_LEVEL) or DEFAULT_LOG_LEVEL
        return str(value).strip().upper()

    @field_validator("log_level", mode="after")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        """Validate log level is one of the valid levels."""
        if value not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got: {value}")
        return value

    @field_validator("log_file", mode="before")
    @classmethod
    def _strip_log_file(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("user_agent", mode="before")
    @classmethod
    def _coerce_user_agent(cls, value: Any) -> str:
        if value is not None and str(value).strip():
            return str(value).strip()
        return _env_value(config_constants.ENV_USER_AGENT) or DEFAULT_USER_AGENT

    @field_validator("timeout", mode="before")
    @classmethod
    def _ensure_timeout(cls, value: Any) -> int:
        if value is None or value == "":
            value = _env_value(config_constants.ENV_TIMEOUT)
            if value is None:
                return DEFAULT_TIMEOUT_SECONDS
        try:
            timeout = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("timeout must be an integer") from exc
        return max(MIN_TIMEOUT_SECONDS, timeout)

    @property
    def feed_path(self) -> str:
        """Location of the generated ``atom.xml``."""
        return os.path.join(self.gallery_path, FEED_FILENAME)


def load_config_file(path: str) -> Dict[str, Any]:  # noqa: C901 - file parsing handles multiple formats
    """Load configuration from a JSON or YAML file.

    The format is picked from the file extension (``.json``, ``.yaml`` or
    ``.yml``). The returned mapping can be passed to ``Config.model_validate``.

    Example YAML::

        gallery_path: /srv/gallery
        log_level: DEBUG
        sort_entries: true

    Raises:
        ValueError: If the path is empty or missing, the format is unsupported,
            parsing fails or the top level is not a mapping
    """
    if not path:
        raise ValueError("Config path cannot be empty")

    cfg_path = Path(path).expanduser()
    try:
        resolved = cfg_path.resolve()
    except (OSError, RuntimeError) as exc:
        raise ValueError(f"Invalid config path: {path} ({exc})") from exc

    if not resolved.exists():
        raise ValueError(f"Config file not found: {resolved}")

    suffix = resolved.suffix.lower()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Failed to read config file {resolved}: {exc}") from exc

    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON config file {resolved}: {exc}") from exc
    elif suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:  # type: ignore[attr-defined]
            raise ValueError(f"Invalid YAML config file {resolved}: {exc}") from exc
    else:
        raise ValueError(f"Unsupported config file type: {resolved.suffix}")

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping/object at the top level")

    return data
