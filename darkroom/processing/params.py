# Edit parameter set
"""
The plain-data parameter set consumed by every pipeline stage.

Default field values form the identity parameter set: running the pipeline
with ``EditParams()`` returns the source pixels unchanged.
"""

import dataclasses
import numbers
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Mapping, Tuple

from ..utils.errors import ConfigurationError

# Declared range per field (callers clamp; stages never require it)
PARAM_RANGES: Dict[str, Tuple[float, float]] = {
    "exposure": (-5.0, 5.0),
    "wb_temp": (1667.0, 25000.0),
    "wb_tint": (-150.0, 150.0),
    "contrast": (-100.0, 100.0),
    "highlights": (-100.0, 100.0),
    "shadows": (-100.0, 100.0),
    "blacks": (-100.0, 100.0),
    "vibrance": (-100.0, 100.0),
    "saturation": (-100.0, 100.0),
    "crop_x": (0.0, 1.0),
    "crop_y": (0.0, 1.0),
    "crop_w": (0.0, 1.0),
    "crop_h": (0.0, 1.0),
}


@dataclass
class EditParams:
    """Slider values for one edit of one photo."""
    exposure: float = 0.0
    wb_temp: float = 5500.0
    wb_tint: float = 0.0
    contrast: float = 0.0
    highlights: float = 0.0
    shadows: float = 0.0
    blacks: float = 0.0
    vibrance: float = 0.0
    saturation: float = 0.0
    crop_x: float = 0.0
    crop_y: float = 0.0
    crop_w: float = 1.0
    crop_h: float = 1.0

    @classmethod
    def identity(cls) -> "EditParams":
        return cls()

    def is_identity(self) -> bool:
        return self == EditParams()

    def replace(self, **changes: float) -> "EditParams":
        """Copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def tone_key(self) -> Tuple[float, float, float, float]:
        """The four tone-curve controls, in table-builder order."""
        return (self.contrast, self.highlights, self.shadows, self.blacks)

    def clamped(self) -> "EditParams":
        """Copy with every field clamped to its declared range."""
        values = {}
        for name, (lo, hi) in PARAM_RANGES.items():
            values[name] = min(max(float(getattr(self, name)), lo), hi)
        return EditParams(**values)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EditParams":
        """
        Build a parameter set from a mapping.

        Missing keys take their identity defaults.

        Raises:
            ConfigurationError: on unknown keys or non-numeric values.
        """
        known_fields = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known_fields:
                raise ConfigurationError(f"Unknown edit parameter: {key}", setting_name=key)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ConfigurationError(
                    f"Edit parameter {key} must be a number, got {type(value).__name__}",
                    setting_name=key,
                )
            values[key] = float(value)
        return cls(**values)
