"""
Spider configuration and JSON config-file loading.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from linkspider.engine import EngineSettings
from linkspider.patterns import Pattern

LOGGER = logging.getLogger(__name__)

# camelCase file keys -> SpiderConfig attributes
FILE_KEYS: Dict[str, str] = {
    "strictCiphers": "strict_ciphers",
    "ignoreInvalidSSL": "ignore_invalid_ssl",
    "reportSpoolInterval": "report_spool_interval",
    "excludePatterns": "exclude_patterns",
    "includePatterns": "include_patterns",
    "additionalPaths": "additional_paths",
    "titlePattern": "title_pattern",
    "crawlerConfig": "engine",
    "verbose": "verbose",
}

LIST_KEYS = ("exclude_patterns", "include_patterns", "additional_paths")


class ConfigError(ValueError):
    """Raised for unreadable or malformed configuration."""


@dataclass(slots=True)
class SpiderConfig:
    """Everything one crawl run needs besides the seed URL."""
    root_url: Optional[str] = None
    strict_ciphers: bool = False
    ignore_invalid_ssl: bool = False
    report_spool_interval: int = 0
    exclude_patterns: List[Pattern] = field(default_factory=list)
    include_patterns: List[Pattern] = field(default_factory=list)
    additional_paths: List[str] = field(default_factory=list)
    title_pattern: Optional[Pattern] = None
    engine: EngineSettings = field(default_factory=EngineSettings)
    verbose: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpiderConfig":
        """Build a config from the camelCase structure used in config files."""
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a JSON object.")

        unknown = sorted(set(data) - set(FILE_KEYS))
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        config = cls()
        for key, value in data.items():
            attribute = FILE_KEYS[key]
            if attribute == "engine":
                if not isinstance(value, dict):
                    raise ConfigError("crawlerConfig must be an object.")
                engine_values = dict(value)
                # Historically lived in the engine block.
                if "ignoreInvalidSSL" in engine_values:
                    config.ignore_invalid_ssl = bool(engine_values.pop("ignoreInvalidSSL"))
                config.engine = EngineSettings.from_dict(engine_values)
            elif attribute in LIST_KEYS:
                if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                    raise ConfigError(f"{key} must be a list of strings.")
                setattr(config, attribute, list(value))
            elif attribute == "report_spool_interval":
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise ConfigError(f"{key} must be a non-negative integer (milliseconds).")
                config.report_spool_interval = value
            else:
                setattr(config, attribute, value)
        return config


def load_config(path: Union[str, Path]) -> SpiderConfig:
    """Read a JSON config file."""
    config_path = Path(path)
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {config_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {config_path}: {exc}") from exc

    LOGGER.debug("Loaded configuration from %s", config_path)
    return SpiderConfig.from_dict(data)
