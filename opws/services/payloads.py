"""Uplink payload schemas.

An uplink is one device, one instant and a small set of named raw numeric
fields. Payload shapes are a closed, versioned registry: each shape lists the
raw field names it knows and the catalog kind each one defaults to for
devices that carry no explicit field mappings.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from opws.config import settings
from opws.exceptions import ValidationError
from opws.utils import parse_timestamp


@dataclass(frozen=True)
class PayloadShape:
    """A known sensor payload layout."""

    tag: str
    fields: Mapping[str, str]  # raw field name -> catalog kind key
    description: str = ""

    def kind_for(self, raw_field: str):
        return self.fields.get(raw_field)


ENV_V1 = PayloadShape(
    tag="env.v1",
    fields={
        "temperature": "air_temp_c",
        "humidity": "air_humidity_pct",
        "rainfall": "rainfall_mm",
        "soil_moisture": "soil_moisture_pct",
        "luminosity": "luminosity_lx",
    },
    description="Multi-sensor node: air temperature/humidity, rain gauge, soil moisture, light",
)

ENV_V2 = PayloadShape(
    tag="env.v2",
    fields={**ENV_V1.fields, "soil_temperature": "soil_temp_c"},
    description="env.v1 plus soil temperature probe",
)

PAYLOAD_SHAPES: Dict[str, PayloadShape] = {shape.tag: shape for shape in (ENV_V1, ENV_V2)}

# Width of stations.code and devices.identifier
MAX_IDENTIFIER_LENGTH = 64


def get_shape(tag: str) -> PayloadShape:
    try:
        return PAYLOAD_SHAPES[tag]
    except KeyError:
        known = ", ".join(sorted(PAYLOAD_SHAPES))
        raise ValidationError(f"Unknown payload schema {tag!r} (known: {known})")


class UplinkRecord(BaseModel):
    """One inbound telemetry record. Accepts TTN-style aliases (dev_eui, timestamp, payload)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    device_identifier: str = Field(
        ..., validation_alias=AliasChoices("device_identifier", "dev_eui", "device")
    )
    instant: datetime = Field(..., validation_alias=AliasChoices("instant", "timestamp"))
    raw_fields: Dict[str, float] = Field(..., validation_alias=AliasChoices("raw_fields", "payload"))
    payload_schema: str = Field(
        default=settings.DEFAULT_PAYLOAD_SCHEMA,
        validation_alias=AliasChoices("payload_schema", "schema"),
    )

    @field_validator("device_identifier")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("device_identifier must not be empty")
        if len(value) > MAX_IDENTIFIER_LENGTH:
            raise ValueError(f"device_identifier must be at most {MAX_IDENTIFIER_LENGTH} characters")
        return value

    @field_validator("instant", mode="before")
    @classmethod
    def _parse_instant(cls, value: Any) -> datetime:
        return parse_timestamp(value)

    @field_validator("raw_fields", mode="before")
    @classmethod
    def _reject_booleans(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            for key, raw in value.items():
                if isinstance(raw, bool) or raw is None:
                    raise ValueError(f"field {key!r} must be a number")
        return value

    @field_validator("raw_fields")
    @classmethod
    def _fields_present_and_finite(cls, value: Dict[str, float]) -> Dict[str, float]:
        if not value:
            raise ValueError("raw_fields must contain at least one reading")
        for key, raw in value.items():
            if not math.isfinite(raw):
                raise ValueError(f"field {key!r} is not a finite number")
        return value


def parse_uplink(data: Union[UplinkRecord, Mapping[str, Any]]) -> UplinkRecord:
    """
    Validate an uplink before anything touches the store.

    Raises:
        ValidationError: missing or malformed device, instant or fields,
            or an unknown payload schema tag
    """
    if isinstance(data, UplinkRecord):
        record = data
    else:
        if not isinstance(data, Mapping):
            raise ValidationError("Uplink must be a JSON object")
        try:
            record = UplinkRecord.model_validate(dict(data))
        except PydanticValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc']) or 'uplink'}: {err['msg']}"
                for err in e.errors()
            ]
            raise ValidationError("Invalid uplink: " + "; ".join(problems), details=problems) from e

    get_shape(record.payload_schema)
    return record
