import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import runsvdir.settings as default_settings

log = logging.getLogger(__name__)

_TRUTHY = ('true', '1', 't', 'yes', 'y', 'on')


class MergedSettings:
    """
    Attribute access to the supervisor configuration in effect.

    Later layers win:
    1. `settings.py` defaults, which already include `.env` and environment
       values read through `python-dotenv`.
    2. The overrides JSON file, restricted to `MODIFIABLE_SETTINGS`.
    3. Command-line values handed to `apply`.
    """

    def __init__(self, overrides_path: Optional[Path] = None) -> None:
        """
        :param overrides_path: Overrides file to read instead of
            `OVERRIDES_JSON_PATH`.
        """
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))
        if overrides_path is not None:
            self.OVERRIDES_JSON_PATH = Path(overrides_path)

        overrides = self._read_overrides()
        if overrides:
            log.info(f"Applying configuration overrides from {self.OVERRIDES_JSON_PATH}")
            for key, value in overrides.items():
                self._apply_override(key, value)

    def _coerce(self, key: str, value: Any) -> Any:
        current = getattr(self, key)
        if isinstance(current, Path):
            return Path(value)
        if isinstance(current, bool):
            return str(value).strip().lower() in _TRUTHY
        if current is None or isinstance(value, type(current)):
            return value
        return type(current)(value)

    def _read_overrides(self) -> Optional[Dict[str, Any]]:
        path = self.OVERRIDES_JSON_PATH
        if not path.exists():
            return None
        try:
            with path.open('r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.error(f"Failed to load or parse overrides file '{path}': {e}")
            return None
        if not isinstance(data, dict):
            log.error(f"Overrides file '{path}' must hold a JSON object, got {type(data).__name__}")
            return None
        return data

    def _apply_override(self, key: str, value: Any) -> None:
        if not hasattr(self, key):
            log.warning(f"Unknown setting '{key}' in overrides file, skipped")
            return
        if key not in self.MODIFIABLE_SETTINGS:
            log.warning(f"Setting '{key}' is non-modifiable, override skipped")
            return
        try:
            setattr(self, key, self._coerce(key, value))
        except (ValueError, TypeError) as e:
            log.error(f"Could not convert override {key}={value!r}: {e}")
            return
        log.debug(f"Override applied: {key} = {value!r}")

    def apply(self, **values: Any) -> None:
        """
        Sets command-line values on top of everything else. None means
        "not given" and leaves the setting alone.

        :raises AttributeError: For a name that is not a setting.
        """
        for key, value in values.items():
            if value is None:
                continue
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting '{key}'")
            setattr(self, key, self._coerce(key, value))

    def as_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in vars(self).items() if key.isupper()}


effective_settings = MergedSettings()
