# custom_components/ipfire_traffic/sensor.py

import logging
from typing import Optional

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfDataRate, UnitOfInformation
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from . import IPFireTrafficCoordinator
from .const import DOMAIN, MS_PER_SECOND

_LOGGER = logging.getLogger(__name__)


def kb_per_second(rate: float) -> float:
    """Scale a KB/ms rate from the client to kB/s."""
    return round(rate * MS_PER_SECOND, 2)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the IPFire traffic sensors."""
    coordinator: IPFireTrafficCoordinator = hass.data[DOMAIN][config_entry.entry_id]

    async_add_entities(
        [
            IPFireSpeedSensor(coordinator, "download", "IPFire Download Speed"),
            IPFireSpeedSensor(coordinator, "upload", "IPFire Upload Speed"),
            IPFireTotalSensor(coordinator, "total_down_kb", "IPFire Total Download"),
            IPFireTotalSensor(coordinator, "total_up_kb", "IPFire Total Upload"),
        ]
    )


class IPFireSensorBase(CoordinatorEntity[IPFireTrafficCoordinator], SensorEntity):
    """Base class for IPFire traffic sensors."""

    def __init__(self, coordinator: IPFireTrafficCoordinator, data_key: str, name: str) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        entry = coordinator.config_entry
        self._data_key = data_key
        self._attr_name = name
        self._attr_unique_id = f"{DOMAIN}_{entry.entry_id}_{data_key}"
        self._attr_device_info = {
            "identifiers": {(DOMAIN, entry.entry_id)},
            "name": entry.title,
            "model": "IPFire",
            "manufacturer": "IPFire Project",
        }


class IPFireSpeedSensor(IPFireSensorBase):
    """Current download or upload rate."""

    _attr_device_class = SensorDeviceClass.DATA_RATE
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfDataRate.KILOBYTES_PER_SECOND

    @property
    def native_value(self) -> Optional[float]:
        rates = self.coordinator.data
        if rates is None or not rates.available:
            return None
        return kb_per_second(getattr(rates, self._data_key))

    @property
    def icon(self) -> str | None:
        if self._data_key == "download":
            return "mdi:arrow-down-bold"
        return "mdi:arrow-up-bold"


class IPFireTotalSensor(IPFireSensorBase):
    """Cumulative counter as reported by the router (resets on reboot)."""

    _attr_device_class = SensorDeviceClass.DATA_SIZE
    _attr_state_class = SensorStateClass.TOTAL_INCREASING
    _attr_native_unit_of_measurement = UnitOfInformation.KILOBYTES

    @property
    def native_value(self) -> Optional[int]:
        if self.coordinator.data is None:
            return None
        return getattr(self.coordinator.data, self._data_key)

    @property
    def icon(self) -> str | None:
        if self._data_key == "total_down_kb":
            return "mdi:download-box"
        return "mdi:upload-box"
