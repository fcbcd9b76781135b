import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

import devcluster.settings as default_settings
from devcluster.local.models import LaunchSpec

log = logging.getLogger(__name__)


def parse_launch_specs(raw_specs: Iterable[Any], base_dir: Path, default_timeout: float) -> List[LaunchSpec]:
    """
    Converts the raw LAUNCH_SPECS definitions into LaunchSpec objects,
    preserving their order.

    :param raw_specs: An iterable of dicts (or already-built LaunchSpecs).
    :param base_dir: Directory that relative executable/config paths resolve against.
    :param default_timeout: Readiness timeout for probes that do not set one.
    :raises ValueError: If a definition is malformed or two specs share a name.
    """
    if not isinstance(raw_specs, (list, tuple)):
        raise ValueError(f"LAUNCH_SPECS must be a list, got {raw_specs!r}")

    specs: List[LaunchSpec] = []
    for raw in raw_specs:
        if isinstance(raw, LaunchSpec):
            specs.append(raw)
        elif isinstance(raw, dict):
            specs.append(LaunchSpec.from_dict(raw, base_dir, default_timeout))
        else:
            raise ValueError(f"Unsupported launch spec definition: {raw!r}")

    names = [spec.name for spec in specs]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Launch spec names must be unique. Duplicated: {', '.join(duplicates)}")
    return specs


def _matches_list_shape(default: List[Any], value: Any) -> bool:
    """A list override must be a list; a list of strings must stay one."""
    if not isinstance(value, list):
        return False
    if default and all(isinstance(item, str) for item in default):
        return all(isinstance(item, str) for item in value)
    return True


class MergedSettings:
    """
    A singleton class that merges default settings with JSON/env overrides.

    This class provides a unified, attribute-based access point for all
    devcluster configuration. It follows a clear precedence:
    1. Base values from `settings.py`.
    2. Overrides from `.env` file (handled by `python-dotenv` in settings.py).
    3. Overrides from `overrides.json` for settings in `MODIFIABLE_SETTINGS`.
    """

    def __init__(self) -> None:
        """Initializes the settings object by loading defaults and overrides."""
        self.OVERRIDES_JSON_PATH: Path = default_settings.OVERRIDES_JSON_PATH

        self._load_defaults()
        self._load_overrides()
        try:
            self.LAUNCH_SPECS = parse_launch_specs(
                self.LAUNCH_SPECS, self.BASE_DIR, self.READINESS_TIMEOUT_SECONDS
            )
        except ValueError as e:
            log.error(f"Invalid LAUNCH_SPECS override: {e}. Falling back to the defaults.")
            self.LAUNCH_SPECS = parse_launch_specs(
                default_settings.LAUNCH_SPECS, self.BASE_DIR, self.READINESS_TIMEOUT_SECONDS
            )

    def _load_defaults(self) -> None:
        """
        Loads all uppercase attributes from the settings.py module as defaults.
        """
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))

    def _load_overrides(self) -> None:
        """
        Loads and applies settings from the `overrides.json` file.

        It will only apply overrides for keys that are explicitly listed in
        the `MODIFIABLE_SETTINGS` set in `settings.py`.
        """
        if not self.OVERRIDES_JSON_PATH.exists():
            return

        try:
            with self.OVERRIDES_JSON_PATH.open('r') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.error(
                f"Failed to load or parse overrides file '{self.OVERRIDES_JSON_PATH}': {e}"
            )
            return

        if not isinstance(overrides, dict):
            log.error(f"Overrides file '{self.OVERRIDES_JSON_PATH}' must contain a JSON object. Ignoring.")
            return

        log.info(f"Loading runtime configuration overrides from {self.OVERRIDES_JSON_PATH}")
        for key, value in overrides.items():
            if not hasattr(self, key):
                log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
                continue
            if key not in self.MODIFIABLE_SETTINGS:
                log.warning(
                    f"Attempted to override non-modifiable setting '{key}'. Ignoring."
                )
                continue

            # Coerce path strings back to Path objects if necessary
            original_value = getattr(self, key)
            if isinstance(original_value, Path):
                setattr(self, key, Path(value))
            elif isinstance(original_value, bool):
                setattr(self, key, str(value).lower() in ('true', '1', 't', 'yes', 'y'))
            elif isinstance(original_value, (int, float)):
                try:
                    setattr(self, key, type(original_value)(value))
                except (TypeError, ValueError) as e:
                    log.error(f"Could not convert override '{key}'={value!r}: {e}. Keeping default.")
                    continue
            elif isinstance(original_value, list):
                if not _matches_list_shape(original_value, value):
                    log.error(f"Override '{key}'={value!r} is not a list of the expected type. Keeping default.")
                    continue
                setattr(self, key, value)
            else:
                setattr(self, key, value)
            log.debug(f"Overridden setting: {key} = {value}")

    def get_all_settings(self) -> Dict[str, Any]:
        """Returns a copy of every setting as a dictionary."""
        return {key: getattr(self, key) for key in dir(self) if key.isupper()}


# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
