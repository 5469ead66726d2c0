"""
Bundle configuration.

Loads the optional YAML bundle file and merges command-line overrides into
it. Paths in the file are resolved relative to the file's directory.
"""

import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

STRATEGIES = ("interactive", "last", "first", "scripted")
KNOWN_KEYS = {"game_path", "mods_path", "mods", "output", "resolver", "report"}


@dataclass
class BundleConfig:
    """Settings for one bundling run."""

    game_path: Optional[Path] = None
    mods_path: Optional[Path] = None
    mods: List[str] = field(default_factory=list)
    output: Optional[Path] = None
    strategy: str = "interactive"
    resolutions: Optional[Path] = None
    report: Optional[Path] = None

    @classmethod
    def load(cls, path: str) -> "BundleConfig":
        """
        Load and validate a bundle configuration file.

        Args:
            path: Path to the YAML file

        Returns:
            Validated configuration
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration: {e}")

        return cls.from_dict(data, Path(path).parent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "BundleConfig":
        """Build a configuration from parsed YAML, validating every key."""
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a mapping")
        unknown = set(data) - KNOWN_KEYS
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        def as_path(key: str, value: Any) -> Optional[Path]:
            if value is None:
                return None
            if not isinstance(value, str):
                raise ValueError(f"'{key}' must be a path string")
            result = Path(value).expanduser()
            if base_dir is not None and not result.is_absolute():
                result = base_dir / result
            return result

        mods = data.get("mods") or []
        if not isinstance(mods, list) or not all(isinstance(name, str) for name in mods):
            raise ValueError("'mods' must be a list of mod titles")

        resolver = data.get("resolver") or {}
        if not isinstance(resolver, dict):
            raise ValueError("'resolver' must be a mapping")

        config = cls(
            game_path=as_path("game_path", data.get("game_path")),
            mods_path=as_path("mods_path", data.get("mods_path")),
            mods=list(mods),
            output=as_path("output", data.get("output")),
            strategy=resolver.get("strategy", "interactive"),
            resolutions=as_path("resolver.resolutions", resolver.get("resolutions")),
            report=as_path("report", data.get("report")),
        )
        config.validate(require_paths=False)
        return config

    def override(self, **options: Any) -> "BundleConfig":
        """Apply command-line options; None means "not given"."""
        for key, value in options.items():
            if key not in self.__dataclass_fields__:
                raise ValueError(f"Unknown option: {key}")
            if value is None or value == ():
                continue
            if key == "mods":
                value = list(value)
            elif key != "strategy":
                value = Path(value)
            setattr(self, key, value)
        return self

    def validate(self, require_paths: bool = True, require_output: bool = True) -> None:
        """
        Check the configuration.

        Args:
            require_paths: Whether game_path and mods_path must be set and exist
            require_output: Whether output must be set

        Raises:
            ValueError: Naming the offending key
        """
        if self.strategy not in STRATEGIES:
            raise ValueError(
                f"'resolver.strategy' must be one of {', '.join(STRATEGIES)}, got '{self.strategy}'"
            )
        if self.strategy == "scripted" and self.resolutions is None:
            raise ValueError("'resolver.resolutions' is required for the scripted strategy")
        if not require_paths:
            return
        for key in ("game_path", "mods_path"):
            value = getattr(self, key)
            if value is None:
                raise ValueError(f"'{key}' is not set")
            if not value.is_dir():
                raise ValueError(f"'{key}' does not exist: {value}")
        if require_output and self.output is None:
            raise ValueError("'output' is not set")
