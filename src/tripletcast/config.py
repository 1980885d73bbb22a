"""
Engine configuration loading and validation.

Configuration lives in a JSON file with shared defaults and per-mode
overrides (weekly, monthly, ...). The merged settings for a mode are
returned as an immutable EngineConfig.

Mixing weight and smoothing pseudo-counts are set per mode here; the
engine itself has no per-mode constants.
"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import jsonschema

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/engine_config.json")

VALID_RANKING_STRATEGIES = ("exact", "approximate")

INTEGER_SETTINGS = ("min_train", "top_n", "top_k_per_position")
NUMBER_SETTINGS = ("alpha_triplet", "alpha_pos", "mix")

ENGINE_SETTINGS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "min_train": {"type": "integer", "minimum": 1},
        "alpha_triplet": {"type": "number", "minimum": 0},
        "alpha_pos": {"type": "number", "minimum": 0},
        "mix": {"type": "number", "minimum": 0, "maximum": 1},
        "top_ks": {
            "type": "array",
            "items": {"type": "integer", "minimum": 1},
            "minItems": 1,
            "uniqueItems": True,
        },
        "top_n": {"type": "integer", "minimum": 1},
        "top_k_per_position": {"type": "integer", "minimum": 1, "maximum": 10},
        "ranking_strategy": {"enum": list(VALID_RANKING_STRATEGIES)},
    },
    "additionalProperties": False,
}

ENGINE_CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["config_version", "defaults"],
    "properties": {
        "config_version": {"type": "string", "pattern": r"^\d+\.\d+\.\d+$"},
        "defaults": ENGINE_SETTINGS_SCHEMA,
        "overrides": {
            "type": "object",
            "additionalProperties": ENGINE_SETTINGS_SCHEMA,
        },
    },
}


class ConfigError(Exception):
    """Raised when engine configuration is invalid."""
    pass


@dataclass(frozen=True)
class EngineConfig:
    """Resolved engine settings for one run."""
    min_train: int = 50
    alpha_triplet: float = 1.0
    alpha_pos: float = 1.0
    mix: float = 0.5
    top_ks: Tuple[int, ...] = (1, 5, 10, 20)
    top_n: int = 30
    top_k_per_position: int = 6
    ranking_strategy: str = "approximate"

    def __post_init__(self):
        errors = validate_settings(asdict(self))
        if errors:
            raise ConfigError("; ".join(errors))

    @classmethod
    def from_dict(cls, settings: Dict[str, Any]) -> "EngineConfig":
        """Build from a (possibly partial) settings dict."""
        unknown = set(settings) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown config keys: {sorted(unknown)}")
        values = dict(settings)
        top_ks = values.get("top_ks")
        if isinstance(top_ks, (list, tuple)):
            if all(_is_int(k) for k in top_ks):
                top_ks = sorted(top_ks)
            values["top_ks"] = tuple(top_ks)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["top_ks"] = list(self.top_ks)
        return d


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_settings(settings: Dict[str, Any]) -> List[str]:
    """
    Check a settings dict against the business rules.

    Rules:
    1. min_train is an integer >= 1
    2. alpha_triplet, alpha_pos are numbers >= 0
    3. mix is a number, 0 <= mix <= 1
    4. top_ks non-empty integers, every K >= 1, no duplicates
    5. top_n is an integer >= 1
    6. top_k_per_position is an integer, 1 <= top_k_per_position <= 10
    7. ranking_strategy is "exact" or "approximate"

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    typed: Dict[str, Any] = {}
    for key, value in settings.items():
        if key in INTEGER_SETTINGS and not _is_int(value):
            errors.append(f"{key} must be an integer, got {value!r}")
        elif key in NUMBER_SETTINGS and not _is_number(value):
            errors.append(f"{key} must be a number, got {value!r}")
        else:
            typed[key] = value

    if "min_train" in typed and typed["min_train"] < 1:
        errors.append(f"min_train must be >= 1, got {typed['min_train']}")

    for key in ("alpha_triplet", "alpha_pos"):
        if key in typed and typed[key] < 0:
            errors.append(f"{key} must be >= 0, got {typed[key]}")

    if "mix" in typed and not (0.0 <= typed["mix"] <= 1.0):
        errors.append(f"mix must be in [0, 1], got {typed['mix']}")

    if "top_ks" in typed:
        top_ks = typed["top_ks"]
        if not isinstance(top_ks, (list, tuple)) or not all(_is_int(k) for k in top_ks):
            errors.append(f"top_ks must be a list of integers, got {top_ks!r}")
        else:
            if not top_ks:
                errors.append("top_ks must not be empty")
            if any(k < 1 for k in top_ks):
                errors.append(f"top_ks entries must be >= 1, got {list(top_ks)}")
            if len(set(top_ks)) != len(top_ks):
                errors.append(f"top_ks must be unique, got {list(top_ks)}")

    if "top_n" in typed and typed["top_n"] < 1:
        errors.append(f"top_n must be >= 1, got {typed['top_n']}")

    if "top_k_per_position" in typed and not (1 <= typed["top_k_per_position"] <= 10):
        errors.append(
            f"top_k_per_position must be in [1, 10], got {typed['top_k_per_position']}"
        )

    strategy = typed.get("ranking_strategy")
    if strategy is not None and strategy not in VALID_RANKING_STRATEGIES:
        errors.append(f"Unknown ranking_strategy: {strategy}")

    return errors


def default_config_document() -> Dict[str, Any]:
    """Built-in configuration used when no file is present."""
    return {
        "config_version": "1.0.0",
        "defaults": EngineConfig().to_dict(),
        "overrides": {
            "weekly": {"mix": 0.5},
            "monthly": {"mix": 0.7},
        },
    }


def validate_engine_config(config: Dict[str, Any]) -> None:
    """
    Validate a full configuration document.

    Raises:
        ConfigError: If schema or business-rule validation fails
    """
    try:
        jsonschema.validate(config, ENGINE_CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        raise ConfigError(f"Schema validation failed: {e.message}")

    errors = validate_settings(config.get("defaults", {}))
    for mode, settings in config.get("overrides", {}).items():
        errors.extend(f"{mode}: {msg}" for msg in validate_settings(settings))
    if errors:
        raise ConfigError("; ".join(errors))


def load_engine_config(config_path: Path = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load and validate the engine configuration file.

    Args:
        config_path: Path to engine_config.json

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If the file is not valid JSON or fails validation
    """
    try:
        with open(config_path) as f:
            config = json.load(f)
    except FileNotFoundError:
        logger.warning(f"Engine config not found at {config_path}, using defaults")
        return default_config_document()
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid engine config JSON: {e}")

    validate_engine_config(config)
    return config


def get_mode_config(
    mode: Optional[str],
    config: Optional[Dict[str, Any]] = None
) -> EngineConfig:
    """
    Merge defaults with mode-specific overrides.

    Args:
        mode: Grouping mode name (None for defaults only)
        config: Configuration document (built-in defaults if None)

    Returns:
        EngineConfig for the mode
    """
    if config is None:
        config = default_config_document()

    settings = dict(config.get("defaults", {}))
    if mode is not None:
        settings.update(config.get("overrides", {}).get(mode, {}))
    return EngineConfig.from_dict(settings)
