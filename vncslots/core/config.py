import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from omegaconf import OmegaConf
from omegaconf.errors import InterpolationResolutionError

from vncslots.constants import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_FILE,
    DEFAULT_MAX_DISPLAY_NUMBER,
    DEFAULT_MIN_DISPLAY_NUMBER,
    DEFAULT_RETRIES,
    DEFAULT_STATE_FILE,
    DISPLAY_NUMBER_MACRO,
    STATE_ENV_VAR,
)

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Load and merge YAML configuration with defaults."""

    def __init__(self) -> None:
        """Initialize ConfigLoader with built-in defaults."""
        self.BUILT_IN_DEFAULTS = {
            "command": None,
            "min_display_number": DEFAULT_MIN_DISPLAY_NUMBER,
            "max_display_number": DEFAULT_MAX_DISPLAY_NUMBER,
            "retries": DEFAULT_RETRIES,
            "use_xauthority": True,
            "skip_on_windows": True,
            "clean_up": False,
            "disabled": False,
            "labels": [],
            "state_file": os.environ.get(STATE_ENV_VAR, str(DEFAULT_STATE_FILE)),
        }

    def load_config(self, config_path: str | None = None) -> dict[str, Any]:
        """Load configuration from YAML file.

        Parameters
        ----------
        config_path : str | None
            Path to YAML config file. If None, checks VNCSLOTS_CONFIG env var,
            then falls back to vncslots.yaml

        Returns
        -------
        dict[str, Any]
            Parsed configuration with defaults and hosts sections,
            with all variable interpolations resolved

        Raises
        ------
        omegaconf.errors.InterpolationResolutionError
            If undefined variables are referenced or circular references exist
        """
        if config_path is None:
            config_path = os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE)

        config_file = Path(config_path)

        if not config_file.exists():
            return {"defaults": {}}

        try:
            cfg = OmegaConf.load(config_file)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML config file %s: %s", config_file, e)
            raise ValueError(f"Invalid YAML in {config_file}: {e}") from e
        except OSError as e:
            logger.error("Failed to read config file %s: %s", config_file, e)
            raise RuntimeError(f"Failed to read config file {config_file}: {e}") from e

        if cfg is None:
            return {"defaults": {}}

        if "vars" in cfg:
            vars_dict = OmegaConf.to_container(cfg.vars, resolve=False)
            for key, value in vars_dict.items():
                if key not in cfg:
                    cfg[key] = value

        try:
            config = OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
        except InterpolationResolutionError as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise
        except (ValueError, KeyError, AttributeError) as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise ValueError(f"Configuration variable resolution error: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Configuration in {config_file} must be a mapping")

        config.setdefault("defaults", {})
        return config

    def get_host_config(
        self, config: dict[str, Any], host: str | None = None
    ) -> dict[str, Any]:
        """Get merged configuration for a specific host or defaults.

        Unlike named sections in other tools, a host without its own section
        is not an error: any host may run jobs.

        Parameters
        ----------
        config : dict[str, Any]
            Full configuration from YAML
        host : str | None
            Host identity, or None for defaults only

        Returns
        -------
        dict[str, Any]
            Merged configuration (built-in defaults + YAML defaults + host settings)
        """
        merged = copy.deepcopy(self.BUILT_IN_DEFAULTS)

        yaml_defaults = config.get("defaults") or {}
        for key, value in yaml_defaults.items():
            merged[key] = value

        if host is not None:
            hosts = config.get("hosts") or {}
            host_config = hosts.get(host) or {}
            for key, value in host_config.items():
                merged[key] = value

        return merged

    def validate_config(self, config: dict[str, Any]) -> None:
        """Validate configuration has required fields and correct types.

        Parameters
        ----------
        config : dict[str, Any]
            Configuration to validate

        Raises
        ------
        ValueError
            If configuration is invalid
        """
        self._validate_display_range(config)
        self._validate_optional_fields(config)
        self._validate_command(config)

    def _validate_display_range(self, config: dict[str, Any]) -> None:
        """Validate display number bounds and retry count.

        Parameters
        ----------
        config : dict[str, Any]
            Configuration to validate

        Raises
        ------
        ValueError
            If the bounds or retry count are invalid
        """
        for field in ("min_display_number", "max_display_number", "retries"):
            if field not in config:
                raise ValueError(f"{field} is required")

            value = config[field]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{field} must be an integer")

            if value < 0:
                raise ValueError(f"{field} must not be negative")

        if config["min_display_number"] > config["max_display_number"]:
            raise ValueError(
                "min_display_number must not be greater than max_display_number "
                f"(got {config['min_display_number']} > {config['max_display_number']})"
            )

    def _validate_optional_fields(self, config: dict[str, Any]) -> None:
        """Validate optional configuration fields.

        Parameters
        ----------
        config : dict[str, Any]
            Configuration to validate

        Raises
        ------
        ValueError
            If optional fields are invalid
        """
        optional_validations = {
            "use_xauthority": (bool, "use_xauthority must be a boolean"),
            "skip_on_windows": (bool, "skip_on_windows must be a boolean"),
            "clean_up": (bool, "clean_up must be a boolean"),
            "disabled": (bool, "disabled must be a boolean"),
            "labels": (list, "labels must be a list"),
            "state_file": (str, "state_file must be a string"),
        }

        for field, (expected_type, type_msg) in optional_validations.items():
            if field in config and not isinstance(config[field], expected_type):
                raise ValueError(type_msg)

        if "labels" in config:
            for item in config["labels"]:
                if not isinstance(item, str):
                    raise ValueError("labels entries must be strings")

        if "state_file" in config and config["state_file"] == "":
            raise ValueError("state_file must not be empty")

    def _validate_command(self, config: dict[str, Any]) -> None:
        """Validate the display server command template.

        A command without the display placeholder is accepted, but every job
        would start the server on the same display, so a warning is logged.

        Parameters
        ----------
        config : dict[str, Any]
            Configuration to validate

        Raises
        ------
        ValueError
            If command is not a string
        """
        command = config.get("command")
        if command is None:
            return

        if not isinstance(command, str):
            raise ValueError("command must be a string")

        if not command.strip():
            raise ValueError("command must not be empty")

        placeholders = (f"${DISPLAY_NUMBER_MACRO}", f"${{{DISPLAY_NUMBER_MACRO}}}")
        if not any(p in command for p in placeholders):
            logger.warning(
                "command '%s' should include $%s so each job gets its own display",
                command,
                DISPLAY_NUMBER_MACRO,
            )
