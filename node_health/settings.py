"""Load harness defaults from a YAML settings file."""

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError

from node_health.models.base import Model
from node_health.models.config import RunMode, Verbosity

SETTINGS_ENV = "NODE_HEALTH_CONFIG"


class RunSettings(Model):
    """Subset of the run configuration that may be set from a file."""

    test_dir: Path | None = None
    tests: Sequence[str] | None = None
    suffix: str | None = None
    jobs: int | None = Field(default=None, ge=1)
    verbosity: Verbosity | None = None
    color: bool | None = None
    first_fail: bool | None = None
    sanity: bool | None = None
    forever: bool | None = None
    mode: RunMode | None = None


def load_settings(path: Path) -> Mapping[str, Any]:
    """Load settings from ``path``, returning only the keys it sets.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty, not YAML, or has unknown keys

    """
    if not path.is_file():
        raise FileNotFoundError(f"Settings file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty settings file: {path}")

    try:
        settings = RunSettings.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid settings schema in {path}: {e}") from e

    values = settings.model_dump(exclude_unset=True, exclude_none=True)
    test_dir = values.get("test_dir")
    if test_dir is not None and not test_dir.is_absolute():
        values["test_dir"] = path.parent / test_dir
    return values
