"""
Measurement Catalog

Static registry of the measurable variable kinds, their unit and their
bucket aggregation policy, plus the lookup tables that sit in front of it:
the caller-facing variable key table used by the series engine and the
default raw-field table used for devices without explicit mappings.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class AggregationPolicy(str, Enum):
    """How raw readings in one bucket collapse into the headline value."""

    AVERAGE = "AVERAGE"
    SUM = "SUM"


@dataclass(frozen=True)
class KindDefinition:
    key: str
    label: str
    unit: str
    aggregation: AggregationPolicy
    description: str = ""


DEFAULT_KINDS: Tuple[KindDefinition, ...] = (
    KindDefinition("air_temp_c", "Air temperature", "°C", AggregationPolicy.AVERAGE,
                   "Air temperature measured by the station sensor"),
    KindDefinition("air_humidity_pct", "Relative humidity", "%", AggregationPolicy.AVERAGE,
                   "Relative air humidity"),
    KindDefinition("soil_moisture_pct", "Soil moisture", "%", AggregationPolicy.AVERAGE,
                   "Approximate volumetric water content of the soil"),
    KindDefinition("soil_temp_c", "Soil temperature", "°C", AggregationPolicy.AVERAGE,
                   "Soil temperature at sensor depth"),
    KindDefinition("luminosity_lx", "Luminosity", "lx", AggregationPolicy.AVERAGE,
                   "Incident illuminance"),
    KindDefinition("rainfall_mm", "Rainfall", "mm", AggregationPolicy.SUM,
                   "Rain accumulated over the reading interval"),
)

KINDS_BY_KEY: Dict[str, KindDefinition] = {k.key: k for k in DEFAULT_KINDS}

# Caller-facing variable key -> storage kind key.
# Identity today; callers that still speak an older key namespace pass their own table.
DEFAULT_VARIABLE_MAP: Dict[str, str] = {k.key: k.key for k in DEFAULT_KINDS}

# Kinds every station must carry for the default payload shape and the generator
GENERATED_KIND_KEYS: Tuple[str, ...] = (
    "air_temp_c",
    "air_humidity_pct",
    "rainfall_mm",
    "soil_moisture_pct",
    "luminosity_lx",
)


def get_kind_definition(key: str) -> KindDefinition:
    """Return the static definition for a kind key (KeyError if unknown)."""
    return KINDS_BY_KEY[key]


def is_known_kind(key: str) -> bool:
    return key in KINDS_BY_KEY


if __name__ == "__main__":
    print("Measurement Catalog")
    print("=" * 60)
    for kind in DEFAULT_KINDS:
        print(f"{kind.key:20s} {kind.unit:4s} {kind.aggregation.value}")
