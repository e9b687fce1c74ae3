from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from face.config import FaceConfig, default_face_config

logger = logging.getLogger(__name__)


@dataclass
class PathsConfig:
    logs_dir: str = "logs"


@dataclass
class RuntimeConfig:
    log_level: str = "INFO"
    log_to_file: bool = False


@dataclass
class ReferenceCacheConfig:
    """
    Staleness policy of the cached reference faces.

    A cached reference older than ttl_sec is reloaded before the next
    comparison, so profile updates are picked up.
    """
    ttl_sec: float = 600.0


@dataclass
class Config:
    paths: PathsConfig = field(default_factory=PathsConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    reference_cache: ReferenceCacheConfig = field(default_factory=ReferenceCacheConfig)
    face_section: Dict[str, Any] = field(default_factory=dict)

    def face_config(self) -> FaceConfig:
        return default_face_config(face_section=self.face_section)


def _update_dataclass_from_dict(obj: Any, data: Dict[str, Any]) -> Any:
    """
    Assign only known fields from dict into dataclass instance.
    Unknown keys in YAML are ignored (backwards-compatible).
    """
    for k, v in data.items():
        if hasattr(obj, k):
            setattr(obj, k, v)
    return obj


def load_config(path: Union[str, Path] = "config/default.yaml") -> Config:
    """
    Load YAML config and map it to our dataclasses.

    Sections:
      - cfg.paths
      - cfg.runtime
      - cfg.reference_cache
      - cfg.face_section  (raw `face:` mapping, see face.config.default_face_config)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a dict, got: {type(raw)}")

    paths_data = raw.get("paths", {}) or {}
    runtime_data = raw.get("runtime", {}) or {}
    cache_data = raw.get("reference_cache", {}) or {}
    face_data = raw.get("face", {}) or {}

    if not isinstance(face_data, dict):
        raise ValueError(f"'face' section must be a dict, got: {type(face_data)}")

    cfg = Config(
        paths=_update_dataclass_from_dict(PathsConfig(), paths_data),
        runtime=_update_dataclass_from_dict(RuntimeConfig(), runtime_data),
        reference_cache=_update_dataclass_from_dict(ReferenceCacheConfig(), cache_data),
        face_section=face_data,
    )
    cfg.reference_cache.ttl_sec = float(cfg.reference_cache.ttl_sec)

    logger.info(
        "Config loaded from %s | logs_dir=%s, log_level=%s, reference_cache.ttl_sec=%.0f",
        path,
        cfg.paths.logs_dir,
        cfg.runtime.log_level,
        cfg.reference_cache.ttl_sec,
    )

    return cfg
