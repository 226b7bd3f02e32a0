"""
Runtime configuration, loaded from YAML with environment overrides.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV = "GBASIC_CONFIG"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class RuntimeConfig:
    log_level: str = "WARNING"
    log_format: str = DEFAULT_LOG_FORMAT
    http_timeout: float = 5.0
    http_retries: int = 2
    http_backoff: float = 0.2
    preprocess_cache_size: int = 256
    max_input_length: int = 4096

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'RuntimeConfig':
        """Builds a config from a mapping, accepting kebab-case keys and ignoring unknown ones."""
        known = {f.name: f for f in fields(cls)}
        kwargs = {}
        for raw_key, value in (data or {}).items():
            key = str(raw_key).replace("-", "_")
            if key not in known:
                logger.warning("ignoring unknown config key %r", raw_key)
                continue
            kwargs[key] = _coerce(known[key].type, value)
        return cls(**kwargs)

    def http_config(self) -> Dict[str, Any]:
        return {
            "timeout": self.http_timeout,
            "retries": self.http_retries,
            "backoff": self.http_backoff,
        }


def _coerce(annotation, value):
    if annotation in (int, "int"):
        return int(value)
    if annotation in (float, "float"):
        return float(value)
    return str(value)


def load_config(path: Optional[str] = None) -> RuntimeConfig:
    """Load configuration from `path` (or $GBASIC_CONFIG), then apply env overrides."""
    data: Dict[str, Any] = {}
    path = path or os.environ.get(CONFIG_ENV)
    if path:
        p = Path(path)
        try:
            loaded = yaml.safe_load(p.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        data.update(loaded or {})

    if os.environ.get("GBASIC_LOG_LEVEL"):
        data["log_level"] = os.environ["GBASIC_LOG_LEVEL"]
    if os.environ.get("GBASIC_HTTP_TIMEOUT"):
        data["http_timeout"] = os.environ["GBASIC_HTTP_TIMEOUT"]
    return RuntimeConfig.from_dict(data)


def configure_logging(config: RuntimeConfig):
    level = getattr(logging, str(config.log_level).upper(), logging.WARNING)
    logging.basicConfig(level=level, format=config.log_format)
