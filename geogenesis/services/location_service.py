"""Geolocation collaborators. Each is asked exactly once per planting."""

import logging
from abc import ABC, abstractmethod

from geogenesis.errors import LocationUnavailable, PermissionDenied
from geogenesis.schemas.tree import Coordinates
from geogenesis.services.photo_service import extract_gps_from_exif

logger = logging.getLogger(__name__)


class LocationProvider(ABC):
    @abstractmethod
    async def resolve(self, image: bytes) -> Coordinates:
        """Coordinates for this capture, or LocationUnavailable / PermissionDenied."""


class DeviceLocation(LocationProvider):
    """Position reported by the client device alongside the photo."""

    def __init__(
        self,
        latitude: float | None = None,
        longitude: float | None = None,
        denied: bool = False,
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.denied = denied

    async def resolve(self, image: bytes) -> Coordinates:
        if self.denied:
            raise PermissionDenied()
        if self.latitude is None or self.longitude is None:
            raise LocationUnavailable("No device position was supplied.")
        try:
            return Coordinates(latitude=self.latitude, longitude=self.longitude)
        except ValueError as e:
            raise LocationUnavailable(f"Device position is out of range: {e}") from e


class ExifLocation(LocationProvider):
    """GPS position embedded in the photo itself."""

    async def resolve(self, image: bytes) -> Coordinates:
        lat, lon = extract_gps_from_exif(image)
        if lat is None or lon is None:
            raise LocationUnavailable("The photo carries no GPS position.")
        try:
            return Coordinates(latitude=lat, longitude=lon)
        except ValueError as e:
            raise LocationUnavailable(f"Photo GPS position is out of range: {e}") from e


class FirstAvailableLocation(LocationProvider):
    """Try providers in order. A permission denial stops the chain."""

    def __init__(self, *providers: LocationProvider):
        self.providers = providers

    async def resolve(self, image: bytes) -> Coordinates:
        last_error: LocationUnavailable = LocationUnavailable()
        for provider in self.providers:
            try:
                return await provider.resolve(image)
            except PermissionDenied:
                raise
            except LocationUnavailable as e:
                logger.debug("%s gave no location: %s", type(provider).__name__, e.detail)
                last_error = e
        raise last_error
