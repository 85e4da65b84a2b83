# custom_components/ipfire_traffic/__init__.py

import logging
from datetime import timedelta

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import (
    CONF_HOST,
    CONF_PASSWORD,
    CONF_PORT,
    CONF_SCAN_INTERVAL,
    CONF_USERNAME,
    CONF_VERIFY_SSL,
)
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from .api_client import IPFireApiClient, IPFireAuthenticationError, TrafficRates
from .const import DEFAULT_PORT, DEFAULT_SCAN_INTERVAL_SECONDS, DEFAULT_VERIFY_SSL, DOMAIN

_LOGGER = logging.getLogger(__name__)

PLATFORMS = ["sensor"]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up IPFire traffic monitoring from a config entry."""
    host = entry.data[CONF_HOST]
    scan_interval = entry.options.get(
        CONF_SCAN_INTERVAL, entry.data.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL_SECONDS)
    )

    api_client = IPFireApiClient(
        host,
        entry.data.get(CONF_PORT, DEFAULT_PORT),
        entry.data[CONF_USERNAME],
        entry.data[CONF_PASSWORD],
        verify_ssl=entry.data.get(CONF_VERIFY_SSL, DEFAULT_VERIFY_SSL),
    )

    coordinator = IPFireTrafficCoordinator(
        hass,
        entry,
        api_client=api_client,
        update_interval=timedelta(seconds=scan_interval),
    )

    await coordinator.async_config_entry_first_refresh()

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = coordinator

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    _LOGGER.debug("IPFire traffic monitoring for %s set up, polling every %ss", host, scan_interval)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        hass.data[DOMAIN].pop(entry.entry_id)
        if not hass.data[DOMAIN]:
            del hass.data[DOMAIN]
    return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload config entry when options changed."""
    await hass.config_entries.async_reload(entry.entry_id)


class IPFireTrafficCoordinator(DataUpdateCoordinator[TrafficRates]):
    """Polls speed.cgi, one request at a time."""

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        api_client: IPFireApiClient,
        update_interval: timedelta,
    ) -> None:
        """Initialize the coordinator."""
        self.api_client = api_client
        super().__init__(
            hass,
            _LOGGER,
            config_entry=entry,
            name=DOMAIN,
            update_interval=update_interval,
        )

    async def _async_update_data(self) -> TrafficRates:
        """Sample the router.

        A poll without a sample is not a failure: the client returns the
        unavailable rates and the sensors go unknown until the next one.
        """
        try:
            return await self.api_client.async_get_speed()
        except IPFireAuthenticationError as err:
            raise ConfigEntryAuthFailed(str(err)) from err
