"""Coordinate model."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from fleetsim.models._base import FleetBaseModel


class Coordinate(FleetBaseModel):
    """A WGS84 position in degrees.

    Parameters
    ----------
    latitude : float
        Latitude in degrees, -90 to 90.
    longitude : float
        Longitude in degrees, -180 to 180.
    """

    latitude: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(
        ge=-180.0,
        le=180.0,
        validation_alias=AliasChoices("longitude", "lng", "lon"),
    )

    @classmethod
    def of(cls, latitude: float, longitude: float) -> Coordinate:
        return cls(latitude=latitude, longitude=longitude)

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)
