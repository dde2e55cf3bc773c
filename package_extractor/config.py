from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError

DEFAULT_LAYOUT = ".package-extractor"


def load_config(path: str | Path) -> Dict[str, Any]:
    """Read a JSON config file, falling back to YAML for non-JSON text."""

    path = Path(path)
    try:
        raw_text = path.read_text()
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    try:
        raw_data = json.loads(raw_text)
    except json.JSONDecodeError:
        try:
            raw_data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"config file {path} is neither JSON nor YAML: {exc}") from exc

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return raw_data


@dataclass
class ExtractorConfig:
    """Settings for one invocation, built once at the command-line boundary."""

    source: str
    destination: str = ""
    buildpack_id: str = ""
    version: str = ""
    extract_all: bool = False
    results_path: Optional[Path] = None
    layout: Path = Path(DEFAULT_LAYOUT)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExtractorConfig":
        results = data.get("results")
        return cls(
            source=str(data.get("from") or ""),
            destination=str(data.get("to") or ""),
            buildpack_id=str(data.get("id") or ""),
            version=str(data.get("version") or ""),
            extract_all=bool(data.get("all", False)),
            results_path=Path(results) if results else None,
            layout=Path(data.get("layout") or DEFAULT_LAYOUT),
        )

    @classmethod
    def load(cls, path: str | Path | None, overrides: Mapping[str, Any]) -> "ExtractorConfig":
        """Merge a config file (if any) with command-line values; set values win."""

        data = load_config(path) if path else {}
        data.update({key: value for key, value in overrides.items() if value not in (None, "")})
        return cls.from_dict(data)

    def validate(self, *, require_destination: bool = True) -> "ExtractorConfig":
        if not self.source:
            raise ConfigError("a source image ('from') is required")
        if require_destination and not self.destination:
            raise ConfigError("a destination ('to') is required")
        if not self.extract_all and not self.buildpack_id:
            raise ConfigError("a buildpack id ('id') is required unless extracting all buildpacks")
        return self
