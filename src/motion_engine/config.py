"""Tunable thresholds for every detector, loadable from YAML.

All defaults were tuned against a 640x480 mirrored webcam feed. They are not
calibrated for other resolutions or frame rates; override them per camera.

Example config.yml:
    bob:
      threshold: 4.0
    slash:
      speed: 900.0
    collectibles:
      spawn_min_interval: 5.0
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

import yaml


@dataclass
class RegionConfig:
    """Face false-positive rejection for hand detections."""
    face_zone_top: float = 0.4  # upper fraction of frame height
    face_zone_width: float = 0.6  # central fraction of frame width
    min_spread: float = 15.0  # px, mean consecutive-keypoint distance
    anchor_index: int = 0  # wrist


@dataclass
class GestureConfig:
    pinch_cap: float = 60.0  # px
    pinch_ratio: float = 0.5
    fist_finger_radius: float = 60.0  # px from palm center
    fist_thumb_radius: float = 50.0
    flat_min_extension: float = 50.0  # px tip-to-MCP
    flat_y_tolerance: float = 40.0  # px spread of index/middle/ring tip y


@dataclass
class BobConfig:
    threshold: float = 5.0  # px dead zone
    reference_index: int = 1  # nose tip
    window_seconds: float = 60.0
    movement_history: int = 30


@dataclass
class SlashConfig:
    history_size: int = 10
    min_samples: int = 5
    speed: float = 800.0  # px/s
    cooldown: float = 1.0  # s


@dataclass
class CollectiblesConfig:
    spawn_min_interval: float = 10.0  # s
    spawn_max_interval: float = 20.0  # s
    spawn_margin: float = 50.0  # px from each side
    spawn_height: float = 0.7  # fraction of frame height
    drift_speed: float = 50.0  # px/s downward
    initial_scale: float = 0.6
    growth_rate: float = 0.15  # scale/s
    max_scale: float = 1.2
    out_of_bounds_margin: float = 50.0  # px below the frame


@dataclass
class CollectionConfig:
    hit_margin: float = 30.0  # px added to the scaled radius
    collect_delay: float = 2.0  # s before the inventory commits
    miss_throttle: float = 1.0  # s between miss notifications


@dataclass
class SessionConfig:
    camera_index: int = 0
    frame_width: int = 640
    frame_height: int = 480
    target_fps: float = 30.0
    mirror_hands: bool = True
    enable_collectibles: bool = True
    enable_profiling: bool = True
    miles_per_bob: float = 0.000947  # ~2.5 ft stride, 2 steps per bob


_SECTIONS = {
    "region": RegionConfig,
    "gestures": GestureConfig,
    "bob": BobConfig,
    "slash": SlashConfig,
    "collectibles": CollectiblesConfig,
    "collection": CollectionConfig,
    "session": SessionConfig,
}


@dataclass
class EngineConfig:
    """All engine thresholds, grouped by component."""
    region: RegionConfig = field(default_factory=RegionConfig)
    gestures: GestureConfig = field(default_factory=GestureConfig)
    bob: BobConfig = field(default_factory=BobConfig)
    slash: SlashConfig = field(default_factory=SlashConfig)
    collectibles: CollectiblesConfig = field(default_factory=CollectiblesConfig)
    collection: CollectionConfig = field(default_factory=CollectionConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> EngineConfig:
        """Build a config from a (possibly partial) dict. Unknown keys are ignored."""
        data = data or {}
        sections = {}
        for name, section_cls in _SECTIONS.items():
            raw = data.get(name) or {}
            known = {f.name for f in fields(section_cls)}
            sections[name] = section_cls(**{k: v for k, v in raw.items() if k in known})
        return cls(**sections)

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        with open(path) as f:
            return cls.from_dict(yaml.safe_load(f))

    def to_yaml(self, path: str | Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
