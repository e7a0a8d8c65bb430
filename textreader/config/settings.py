"""Configuration dataclass and loading utilities.

Provides a strongly-typed configuration object that is injected into
services. Values come from DEFAULT_CONFIG, then an optional JSON file, then
``TEXTREADER_*`` environment variables.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Dict, Mapping, Optional
import json, os, logging
from .defaults import DEFAULT_CONFIG, ENV_PREFIX
from ..core.exceptions import ConfigError

logger = logging.getLogger(__name__)

@dataclass(slots=True)
class Config:
    # Camera
    camera_index: int = DEFAULT_CONFIG["camera_index"]
    camera_width: int = DEFAULT_CONFIG["camera_width"]
    camera_height: int = DEFAULT_CONFIG["camera_height"]
    camera_rotation_degrees: int = DEFAULT_CONFIG["camera_rotation_degrees"]
    camera_mirror: bool = DEFAULT_CONFIG["camera_mirror"]

    # Detection
    model_path: str = DEFAULT_CONFIG["model_path"]
    detection_confidence_threshold: float = DEFAULT_CONFIG["detection_confidence_threshold"]
    detection_iou_threshold: float = DEFAULT_CONFIG["detection_iou_threshold"]

    # Cropping and recognition
    crop_padding_ratio: float = DEFAULT_CONFIG["crop_padding_ratio"]
    recognition_max_workers: int = DEFAULT_CONFIG["recognition_max_workers"]
    recognition_timeout_s: Optional[float] = DEFAULT_CONFIG["recognition_timeout_s"]
    tesseract_language: str = DEFAULT_CONFIG["tesseract_language"]
    tesseract_config: str = DEFAULT_CONFIG["tesseract_config"]
    ocr_binarize: bool = DEFAULT_CONFIG["ocr_binarize"]

    # Speech
    speech_language: str = DEFAULT_CONFIG["speech_language"]
    speech_rate: int = DEFAULT_CONFIG["speech_rate"]
    announce_capture_start: bool = DEFAULT_CONFIG["announce_capture_start"]

    # Logging
    log_level: str = DEFAULT_CONFIG["log_level"]
    log_dir: str = DEFAULT_CONFIG["log_dir"]
    enable_file_logging: bool = DEFAULT_CONFIG["enable_file_logging"]
    structured_logging: bool = DEFAULT_CONFIG["structured_logging"]

    # Arbitrary extra values retained for forward compatibility
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        extra = d.pop("extra", {})
        d.update(extra)
        return d

    def get(self, key: str, default: Any = None) -> Any:
        if key in _FIELD_NAMES:
            return getattr(self, key)
        return self.extra.get(key, default)


_FIELD_NAMES = frozenset(f.name for f in fields(Config) if f.name != "extra")
_NULLABLE_KEYS = frozenset({"recognition_timeout_s"})


def _check_types(cfg: Config) -> None:
    for key in _FIELD_NAMES:
        default = DEFAULT_CONFIG.get(key)
        if default is None:
            continue
        value = getattr(cfg, key)
        if value is None and key in _NULLABLE_KEYS:
            continue
        if isinstance(default, bool):
            valid = isinstance(value, bool)
        elif isinstance(default, int):
            valid = isinstance(value, int) and not isinstance(value, bool)
        elif isinstance(default, float):
            valid = isinstance(value, (int, float)) and not isinstance(value, bool)
        else:
            valid = isinstance(value, type(default))
        if not valid:
            raise ConfigError(
                f"{key} must be of type {type(default).__name__}, got {type(value).__name__} {value!r}"
            )


def validate_config(cfg: Config) -> None:
    """Raise ConfigError for values the pipeline cannot work with."""
    _check_types(cfg)
    if not 0.0 <= cfg.crop_padding_ratio < 0.5:
        raise ConfigError(f"crop_padding_ratio must be within [0, 0.5), got {cfg.crop_padding_ratio}")
    if cfg.recognition_max_workers < 1:
        raise ConfigError("recognition_max_workers must be at least 1")
    if cfg.recognition_timeout_s is not None and cfg.recognition_timeout_s <= 0:
        raise ConfigError("recognition_timeout_s must be positive or null")
    if cfg.camera_rotation_degrees % 90 != 0:
        raise ConfigError(f"camera_rotation_degrees must be a multiple of 90, got {cfg.camera_rotation_degrees}")
    for key in ("detection_confidence_threshold", "detection_iou_threshold"):
        value = getattr(cfg, key)
        if not 0.0 <= value <= 1.0:
            raise ConfigError(f"{key} must be within [0.0, 1.0], got {value}")


def _coerce(key: str, raw: str) -> Any:
    default = DEFAULT_CONFIG.get(key)
    if key in _NULLABLE_KEYS and raw.strip().lower() in ("", "none", "null"):
        return None
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def _apply_environment_overrides(config_dict: Dict[str, Any],
                                 environ: Mapping[str, str]) -> Dict[str, Any]:
    """Apply TEXTREADER_<KEY> environment variables on top of file values."""
    result = dict(config_dict)
    for key in DEFAULT_CONFIG:
        env_key = ENV_PREFIX + key.upper()
        if env_key not in environ:
            continue
        try:
            result[key] = _coerce(key, environ[env_key])
            logger.info(f"Configuration '{key}' overridden from environment")
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_key}: {environ[env_key]!r}")
    return result


def load_config(path: str = "config.json", environ: Optional[Mapping[str, str]] = None) -> Config:
    """Load configuration from a JSON file with environment overrides.

    Args:
        path: Path to config.json file
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Config: Loaded and validated configuration

    Raises:
        ConfigError: if a value is out of range
    """
    data: Dict[str, Any] = {}

    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded_data = json.load(f)
            if isinstance(loaded_data, dict):
                data = loaded_data
                logger.info(f"Successfully loaded configuration from '{path}'")
            else:
                logger.error(f"Configuration file '{path}' does not contain a JSON object, using defaults")
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON configuration file '{path}': {e}. Using defaults.")
        except OSError as e:
            logger.error(f"Cannot read configuration file '{path}': {e}. Using defaults.")
    else:
        logger.info(f"Configuration file '{path}' does not exist. Using defaults.")

    merged = {**DEFAULT_CONFIG, **data}
    merged = _apply_environment_overrides(merged, os.environ if environ is None else environ)

    extra = {k: v for k, v in merged.items() if k not in _FIELD_NAMES}
    if extra:
        logger.info(f"Found extra configuration keys: {list(extra.keys())}")

    cfg = Config(**{k: merged[k] for k in _FIELD_NAMES}, extra=extra)
    validate_config(cfg)
    return cfg


def save_config(cfg: Config, path: str = "config.json") -> None:
    """Save configuration to a JSON file."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(cfg.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info(f"Configuration saved successfully to '{path}'")
    except OSError as e:
        logger.error(f"Error saving configuration file '{path}': {e}")
