"""
Range checks applied by the data layer before events reach the engine.

The engine itself trusts its input; these checks keep obviously
corrupt feed records (mag 99, lat 200) out of the statistics.
"""

import math

from quakewatch.errors import ValidationError
from quakewatch.events.record import SeismicEvent

MAGNITUDE_RANGE = (-2.0, 10.0)
DEPTH_RANGE_KM = (0.0, 700.0)
LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)
MAX_ID_LENGTH = 100


def _check_range(field: str, value: float, bounds: tuple[float, float], unit: str = "") -> None:
    low, high = bounds
    if math.isnan(value) or value < low or value > high:
        suffix = f" {unit}" if unit else ""
        raise ValidationError(
            field,
            f"{value} is outside valid range [{low}, {high}]{suffix}",
        )


def validate_magnitude(magnitude: float) -> None:
    _check_range("magnitude", magnitude, MAGNITUDE_RANGE)


def validate_depth(depth: float) -> None:
    _check_range("depth", depth, DEPTH_RANGE_KM, "km")


def validate_latitude(latitude: float) -> None:
    _check_range("latitude", latitude, LATITUDE_RANGE)


def validate_longitude(longitude: float) -> None:
    _check_range("longitude", longitude, LONGITUDE_RANGE)


def validate_event_id(event_id: str) -> None:
    if not event_id:
        raise ValidationError("id", "Event ID cannot be empty")
    if len(event_id) > MAX_ID_LENGTH:
        raise ValidationError(
            "id",
            f"Event ID too long: {len(event_id)} characters (max {MAX_ID_LENGTH})",
        )


def validate_event(event: SeismicEvent) -> SeismicEvent:
    """
    Validate every checked field of an event.
    
    Returns:
        The same event, for chaining
    
    Raises:
        ValidationError: On the first failing field
    """
    validate_event_id(event.id)
    validate_magnitude(event.magnitude)
    validate_depth(event.depth)
    validate_latitude(event.latitude)
    validate_longitude(event.longitude)
    return event
