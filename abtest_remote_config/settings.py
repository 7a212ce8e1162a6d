"""
Client settings - loading and validating the bundled YAML configuration

The settings file ships inside the package (configs/remote_config.yaml) so
the client behaves the same whether it runs from a checkout, an editable
install or site-packages. Individual values can be overridden through
environment variables, which is how development builds shorten the TTL
without touching the file.

Design Considerations:
- Fail fast: a broken settings file is a deployment bug, so loading raises
  ConfigSettingsError with a clear message instead of guessing
- Validation through pydantic, so bad values are caught before the client
  ever configures the backend
"""

import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigSettingsError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = "remote_config.yaml"

# Environment variable -> field of the `client` section
ENV_OVERRIDES = {
    "ABTEST_DEVELOPMENT_MODE": "development_mode",
    "ABTEST_FETCH_TIMEOUT_SECONDS": "fetch_timeout_seconds",
}


class ClientSettings(BaseModel):
    """Validated settings for RemoteConfigClient"""

    model_config = ConfigDict(frozen=True)

    development_mode: bool = False
    default_ttl_seconds: float = Field(default=3600.0, ge=0)
    development_ttl_seconds: float = Field(default=60.0, ge=0)
    fetch_timeout_seconds: float = Field(default=30.0, gt=0)
    custom_signals: Dict[str, str] = Field(default_factory=dict)

    @property
    def minimum_fetch_interval(self) -> float:
        """The effective cache TTL in seconds"""
        if self.development_mode:
            return self.development_ttl_seconds
        return self.default_ttl_seconds


def _read_settings_text(path: Optional[Union[str, Path]]) -> str:
    if path is not None:
        try:
            return Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigSettingsError(f"Could not read settings file '{path}': {e}") from e

    try:
        resource = resources.files("abtest_remote_config").joinpath(f"configs/{DEFAULT_SETTINGS_FILE}")
        return resource.read_text(encoding="utf-8")
    except (OSError, ModuleNotFoundError) as e:
        raise ConfigSettingsError(
            f"Could not locate bundled settings file '{DEFAULT_SETTINGS_FILE}'. "
            f"Make sure the package is properly installed. Error: {e}"
        ) from e


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ClientSettings:
    """
    Load client settings

    Args:
        path: Optional settings file; the bundled file is used when omitted
        environ: Environment to read overrides from (defaults to os.environ)

    Returns:
        Validated ClientSettings

    Raises:
        ConfigSettingsError: If the file is missing, isn't valid YAML or
            holds invalid values
    """
    text = _read_settings_text(path)

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigSettingsError(f"Invalid YAML in settings file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigSettingsError("Settings file must contain a YAML dictionary")

    client_section = data.get("client") or {}
    if not isinstance(client_section, dict):
        raise ConfigSettingsError("The 'client' section must be a dictionary")

    merged: Dict[str, Any] = dict(client_section)
    merged["custom_signals"] = data.get("custom_signals") or {}

    env = os.environ if environ is None else environ
    for variable, field_name in ENV_OVERRIDES.items():
        if variable in env:
            logger.debug(f"Overriding {field_name} from {variable}")
            merged[field_name] = env[variable]

    try:
        settings = ClientSettings.model_validate(merged)
    except ValidationError as e:
        raise ConfigSettingsError(f"Settings validation failed: {e}") from e

    logger.info(
        f"Loaded client settings (development_mode={settings.development_mode}, "
        f"ttl={settings.minimum_fetch_interval}s, timeout={settings.fetch_timeout_seconds}s)"
    )
    return settings
