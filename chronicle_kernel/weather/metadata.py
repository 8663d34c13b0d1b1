"""
Authored per-location weather metadata.

Tables are immutable and passed explicitly to whoever needs them; a
location's own ``weather_metadata`` always wins over a table entry.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from chronicle_kernel.models.record import LocationRecord
from chronicle_kernel.models.weather import (
    Drainage,
    Elevation,
    Exposure,
    LocationWeatherMetadata,
)

MetadataTable = Mapping[str, LocationWeatherMetadata]

EMPTY_METADATA_TABLE: MetadataTable = MappingProxyType({})

ISLE_OF_MARROW_WEATHER_METADATA: MetadataTable = MappingProxyType({
    "the-landing": LocationWeatherMetadata(
        elevation=Elevation.LOW,
        near_ocean=True,
        coastal_exposure=Exposure.MEDIUM,
        fog_prone=True,
        drainage=Drainage.NORMAL,
        indoors=False,
        enclosed=Exposure.LOW,
        wind_exposure=Exposure.MEDIUM,
    ),
    "the-rib-market": LocationWeatherMetadata(
        elevation=Elevation.MEDIUM,
        near_ocean=True,
        coastal_exposure=Exposure.LOW,          # Sheltered by the ribs
        fog_prone=False,
        drainage=Drainage.GOOD,
        indoors=False,                          # Open-air market
        enclosed=Exposure.MEDIUM,
        wind_exposure=Exposure.LOW,
    ),
    "the-drunken-vertebra": LocationWeatherMetadata(
        elevation=Elevation.MEDIUM,
        near_ocean=True,
        coastal_exposure=Exposure.LOW,
        fog_prone=False,
        drainage=Drainage.GOOD,
        indoors=True,                           # Built into a vertebra
        enclosed=Exposure.HIGH,
        wind_exposure=Exposure.LOW,
    ),
    "the-spine-ridge": LocationWeatherMetadata(
        elevation=Elevation.HIGH,
        near_ocean=True,
        coastal_exposure=Exposure.HIGH,
        fog_prone=False,                        # Above the fog line
        drainage=Drainage.GOOD,
        indoors=False,
        enclosed=Exposure.LOW,
        wind_exposure=Exposure.HIGH,
    ),
    "the-heartspring": LocationWeatherMetadata(
        elevation=Elevation.BELOW,
        near_ocean=False,
        coastal_exposure=Exposure.LOW,
        fog_prone=False,
        drainage=Drainage.GOOD,
        indoors=True,                           # Cave-like
        enclosed=Exposure.HIGH,
        wind_exposure=Exposure.LOW,
    ),
    "the-maw": LocationWeatherMetadata(
        elevation=Elevation.LOW,
        near_ocean=True,
        coastal_exposure=Exposure.HIGH,         # Cove takes the surge
        fog_prone=True,
        drainage=Drainage.POOR,                 # Floods easily
        indoors=False,
        enclosed=Exposure.MEDIUM,
        wind_exposure=Exposure.LOW,
    ),
})


def lookup_location_metadata(
    location_id: str,
    location: Optional[LocationRecord] = None,
    table: MetadataTable = EMPTY_METADATA_TABLE,
) -> Optional[LocationWeatherMetadata]:
    if location is not None and location.weather_metadata is not None:
        return location.weather_metadata
    return table.get(location_id)
