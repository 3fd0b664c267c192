"""
Configuration management for the golf leaderboard service.
Supports both JSON file configuration and environment variable overrides.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


class GolfBoardConfig:
    """Configuration management for the golf leaderboard service."""

    DEFAULT_CONFIG = {
        "tournament_title": "Golf Tournament",
        "scoring": {
            "holes_per_round": 18,
            "min_par": 2,
            "max_par": 7,
            "max_strokes": 15,
        },
        "leaderboard": {
            "summary_size": 5,
            "position_window": 2,
        },
        "live": {
            "enabled": True,
            "queue_size": 100,
            "send_timeout": 5.0,
            "heartbeat": 30.0,
        },
        "logging": {
            "level": "INFO",
            "log_to_file": False,
            "log_dir": "logs",
        },
    }

    def __init__(
        self,
        config_path: str = "golfboard_config.json",
        create_default: bool = True,
    ) -> None:
        """Initialize configuration from file, environment variables, or defaults."""
        self.config_path = Path(config_path)
        self.create_default = create_default
        self.config = self._load_config()
        self._apply_env_overrides()
        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from JSON file or create default.

        @return: Dictionary containing the loaded configuration
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    loaded_config = json.load(f)

                # Merge with defaults to ensure all keys exist
                config = copy.deepcopy(self.DEFAULT_CONFIG)
                self._deep_merge(config, loaded_config)
                return config

            except (json.JSONDecodeError, IOError) as e:
                logger.warning(
                    "Error loading config from %s: %s; using defaults",
                    self.config_path,
                    e,
                )
                return copy.deepcopy(self.DEFAULT_CONFIG)
        else:
            if self.create_default:
                self._create_default_config()
            return copy.deepcopy(self.DEFAULT_CONFIG)

    def _deep_merge(
        self,
        base_dict: Dict[str, Any],
        update_dict: Dict[str, Any],
    ) -> None:
        """
        Recursively merge dictionaries.

        @param base_dict: Base dictionary to merge into
        @param update_dict: Dictionary with updates to merge
        """
        for key, value in update_dict.items():
            if (
                key in base_dict
                and isinstance(base_dict[key], dict)
                and isinstance(value, dict)
            ):
                self._deep_merge(base_dict[key], value)
            else:
                base_dict[key] = value

    def _apply_env_overrides(self) -> None:
        """
        Apply environment variable overrides to configuration.

        Environment variables follow the pattern: SECTION_KEY (e.g., SCORING_MAX_PAR)
        """
        env_mappings = {
            "TOURNAMENT_TITLE": ("tournament_title",),

            "SCORING_HOLES_PER_ROUND": ("scoring", "holes_per_round"),
            "SCORING_MIN_PAR": ("scoring", "min_par"),
            "SCORING_MAX_PAR": ("scoring", "max_par"),
            "SCORING_MAX_STROKES": ("scoring", "max_strokes"),

            "LEADERBOARD_SUMMARY_SIZE": ("leaderboard", "summary_size"),
            "LEADERBOARD_POSITION_WINDOW": ("leaderboard", "position_window"),

            "LIVE_UPDATES": ("live", "enabled"),
            "LIVE_QUEUE_SIZE": ("live", "queue_size"),
            "LIVE_SEND_TIMEOUT": ("live", "send_timeout"),
            "LIVE_HEARTBEAT": ("live", "heartbeat"),

            "LOG_LEVEL": ("logging", "level"),
            "LOG_TO_FILE": ("logging", "log_to_file"),
            "LOG_DIR": ("logging", "log_dir"),
        }

        for env_var, config_path in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                converted_value = self._convert_env_value(env_value)
                self._set_nested_config(config_path, converted_value)

    def _convert_env_value(self, value: str) -> Any:
        """
        Convert environment variable string to appropriate type.

        @param value: String value from environment variable
        @return: Converted value (bool, int, float, or string)
        """
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _set_nested_config(self, path: tuple, value: Any) -> None:
        """
        Set a nested configuration value using a path tuple.

        @param path: Tuple representing the nested path (e.g., ("live", "queue_size"))
        @param value: Value to set
        """
        current = self.config
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _create_default_config(self) -> None:
        """
        Create a default configuration file.

        Writes the default configuration to the configured file path.
        """
        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self.DEFAULT_CONFIG, f, indent=2)
            logger.info("Created default configuration file: %s", self.config_path)
        except IOError as e:
            logger.warning("Could not create config file %s: %s", self.config_path, e)

    def _reset(self, *path: str) -> None:
        default = self.DEFAULT_CONFIG
        for key in path:
            default = default[key]
        logger.warning("Invalid %s, using %r", ".".join(path), default)
        self._set_nested_config(path, default)

    def _validate_config(self) -> None:
        """
        Validate configuration values.

        Checks configuration values for validity and sets defaults for invalid values.
        """
        for key in ("holes_per_round", "min_par", "max_par", "max_strokes"):
            value = self.config["scoring"][key]
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                self._reset("scoring", key)

        if self.config["scoring"]["min_par"] > self.config["scoring"]["max_par"]:
            self._reset("scoring", "min_par")
            self._reset("scoring", "max_par")

        if not isinstance(self.config["leaderboard"]["summary_size"], int) or (
            self.config["leaderboard"]["summary_size"] <= 0
        ):
            self._reset("leaderboard", "summary_size")

        if not isinstance(self.config["leaderboard"]["position_window"], int) or (
            self.config["leaderboard"]["position_window"] < 0
        ):
            self._reset("leaderboard", "position_window")

        if not isinstance(self.config["live"]["queue_size"], int) or (
            self.config["live"]["queue_size"] <= 0
        ):
            self._reset("live", "queue_size")

        for key in ("send_timeout", "heartbeat"):
            value = self.config["live"][key]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                self._reset("live", key)

        level = str(self.config["logging"]["level"]).upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            self._reset("logging", "level")
        else:
            self.config["logging"]["level"] = level

    def get(
        self,
        *keys: str,
    ) -> Any:
        """
        Get nested configuration value using dot notation.

        @param keys: Variable arguments representing nested keys to traverse
        @return: Configuration value at the specified path, None if not found
        """
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return None
        return value

    def is_live_enabled(self) -> bool:
        """
        Check if live broadcasting is enabled.

        @return: True if live updates are enabled, False otherwise
        """
        return self.get("live", "enabled") is True

    def scoring_limits(self) -> Dict[str, int]:
        """
        Score validation bounds, shaped for ScoreSubmission.from_payload.

        @return: Dictionary with holes_per_round, min_par, max_par, max_strokes
        """
        return {
            key: self.get("scoring", key)
            for key in ("holes_per_round", "min_par", "max_par", "max_strokes")
        }

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        @return: True if saved successfully, False on error
        """
        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self.config, f, indent=2)
            return True
        except IOError as e:
            logger.warning("Could not save config file %s: %s", self.config_path, e)
            return False
