"""Domain models shared across pipeline modules."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _optional_number(value: Any, field_name: str) -> float | None:
    if value is None:
        return None
    # bool is an int subclass; `from: true` is a config mistake, not 1.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected number or null for '{field_name}'")
    if not math.isfinite(value):
        raise ValueError(f"Expected finite number for '{field_name}'")
    return float(value)


@dataclass(frozen=True, slots=True)
class ValueRange:
    """Maps an inclusive value interval to a fill color.

    A bound of `None` leaves that side open. `name` replaces the derived
    legend label when set.
    """

    color: str
    from_: float | None = None
    to: float | None = None
    name: str | None = None

    def matches(self, value: float | None) -> bool:
        if value is None:
            return self.from_ is None and self.to is None
        return (self.from_ is None or value >= self.from_) and (self.to is None or value <= self.to)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], field_name: str = "value_range") -> ValueRange:
        from_ = _optional_number(data.get("from"), f"{field_name}.from")
        to = _optional_number(data.get("to"), f"{field_name}.to")
        if from_ is not None and to is not None and from_ > to:
            raise ValueError(f"'{field_name}.from' must be <= '{field_name}.to'")
        name_raw = data.get("name")
        return cls(
            color=_require_str(data.get("color"), f"{field_name}.color"),
            from_=from_,
            to=to,
            name=_require_str(name_raw, f"{field_name}.name") if name_raw is not None else None,
        )


@dataclass(frozen=True, slots=True)
class LegendItem:
    """Inert legend entry derived from one value range."""

    label: str
    color: str
    is_static: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "color": self.color, "is_static": self.is_static}


@dataclass(frozen=True, slots=True)
class MapPointSpec:
    """One input region: display name, data value and outline path."""

    name: str
    value: float | None
    path: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> MapPointSpec:
        path = data.get("path")
        if not isinstance(path, str):
            raise ValueError("Expected string for 'path'")
        return cls(
            name=_require_str(data.get("name"), "name"),
            value=_optional_number(data.get("value"), "value"),
            path=path,
        )


@dataclass(frozen=True, slots=True)
class RenderManifest:
    """Render metadata written next to the map image."""

    generated_at_utc: str
    config_hash_sha256: str
    data_hash_sha256: str
    image_path: str
    points_total: int
    points_drawn: int
    points_skipped: int
    transform: Mapping[str, float]
    legend: tuple[LegendItem, ...] = ()

    @classmethod
    def create(
        cls,
        *,
        config_hash_sha256: str,
        data_hash_sha256: str,
        image_path: str,
        points_total: int,
        points_drawn: int,
        points_skipped: int,
        transform: Mapping[str, float],
        legend: tuple[LegendItem, ...] = (),
    ) -> RenderManifest:
        now = datetime.now(timezone.utc).isoformat()
        return cls(
            generated_at_utc=now,
            config_hash_sha256=config_hash_sha256,
            data_hash_sha256=data_hash_sha256,
            image_path=image_path,
            points_total=points_total,
            points_drawn=points_drawn,
            points_skipped=points_skipped,
            transform=transform,
            legend=legend,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at_utc": self.generated_at_utc,
            "config_hash_sha256": self.config_hash_sha256,
            "data_hash_sha256": self.data_hash_sha256,
            "image_path": self.image_path,
            "points": {
                "total": self.points_total,
                "drawn": self.points_drawn,
                "skipped": self.points_skipped,
            },
            "transform": dict(self.transform),
            "legend": [item.to_dict() for item in self.legend],
        }
