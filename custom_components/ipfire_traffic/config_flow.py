# custom_components/ipfire_traffic/config_flow.py

import logging
from collections.abc import Mapping
from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.const import (
    CONF_HOST,
    CONF_PASSWORD,
    CONF_PORT,
    CONF_SCAN_INTERVAL,
    CONF_USERNAME,
    CONF_VERIFY_SSL,
)
from homeassistant.core import callback
from homeassistant.helpers import selector

from .api_client import (
    IPFireApiClient,
    IPFireAuthenticationError,
    IPFireConnectionError,
    IPFireResponseError,
)
from .const import (
    DEFAULT_PORT,
    DEFAULT_SCAN_INTERVAL_SECONDS,
    DEFAULT_USERNAME,
    DEFAULT_VERIFY_SSL,
    DOMAIN,
)

_LOGGER = logging.getLogger(__name__)

SCAN_INTERVAL_SELECTOR = selector.NumberSelector(
    selector.NumberSelectorConfig(
        min=5, max=3600, mode=selector.NumberSelectorMode.SLIDER, unit_of_measurement="seconds"
    )
)

DATA_SCHEMA = vol.Schema({
    vol.Required(CONF_HOST): str,
    vol.Required(CONF_PORT, default=DEFAULT_PORT): vol.All(vol.Coerce(int), vol.Range(min=1, max=65535)),
    vol.Required(CONF_USERNAME, default=DEFAULT_USERNAME): str,
    vol.Required(CONF_PASSWORD): str,
    # Off by default: IPFire ships a self-signed certificate
    vol.Optional(CONF_VERIFY_SSL, default=DEFAULT_VERIFY_SSL): bool,
    vol.Optional(CONF_SCAN_INTERVAL, default=DEFAULT_SCAN_INTERVAL_SECONDS): SCAN_INTERVAL_SELECTOR,
})

REAUTH_SCHEMA = vol.Schema({
    vol.Required(CONF_USERNAME): str,
    vol.Required(CONF_PASSWORD): str,
})


async def validate_input(data: Mapping[str, Any]) -> dict[str, str]:
    """Try one request against speed.cgi and return form errors, if any."""
    api_client = IPFireApiClient(
        data[CONF_HOST],
        data[CONF_PORT],
        data[CONF_USERNAME],
        data[CONF_PASSWORD],
        verify_ssl=data.get(CONF_VERIFY_SSL, DEFAULT_VERIFY_SSL),
    )
    try:
        await api_client.async_validate()
    except IPFireAuthenticationError:
        return {"base": "invalid_auth"}
    except IPFireConnectionError:
        return {"base": "cannot_connect"}
    except IPFireResponseError:
        _LOGGER.warning("%s does not look like an IPFire speed.cgi endpoint", data[CONF_HOST])
        return {"base": "invalid_response"}
    except Exception:  # noqa: BLE001
        _LOGGER.exception("Unexpected error validating IPFire at %s", data[CONF_HOST])
        return {"base": "unknown"}
    return {}


class IPFireTrafficConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Config flow for IPFire Traffic."""

    VERSION = 1

    async def async_step_user(self, user_input=None):
        """Handle the initial step."""
        errors = {}

        if user_input is not None:
            host = user_input[CONF_HOST]
            await self.async_set_unique_id(f"{host}:{user_input[CONF_PORT]}")
            self._abort_if_unique_id_configured()

            errors = await validate_input(user_input)
            if not errors:
                return self.async_create_entry(title=f"IPFire ({host})", data=user_input)

        return self.async_show_form(
            step_id="user",
            data_schema=self.add_suggested_values_to_schema(DATA_SCHEMA, user_input or {}),
            errors=errors,
        )

    async def async_step_reauth(self, entry_data: Mapping[str, Any]):
        """Start reauthentication after the router rejected the credentials."""
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(self, user_input=None):
        """Ask for a new username and password."""
        errors = {}
        entry = self._get_reauth_entry()

        if user_input is not None:
            errors = await validate_input({**entry.data, **user_input})
            if not errors:
                return self.async_update_reload_and_abort(entry, data_updates=user_input)

        return self.async_show_form(
            step_id="reauth_confirm",
            data_schema=self.add_suggested_values_to_schema(
                REAUTH_SCHEMA, {CONF_USERNAME: entry.data[CONF_USERNAME]}
            ),
            description_placeholders={"host": entry.data[CONF_HOST]},
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Get the options flow for this handler."""
        return IPFireTrafficOptionsFlowHandler()


class IPFireTrafficOptionsFlowHandler(config_entries.OptionsFlow):
    """Handle the IPFire Traffic options."""

    async def async_step_init(self, user_input=None):
        """Manage the options."""
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        options_schema = vol.Schema({
            vol.Optional(
                CONF_SCAN_INTERVAL,
                default=self.config_entry.options.get(
                    CONF_SCAN_INTERVAL,
                    self.config_entry.data.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL_SECONDS),
                ),
            ): SCAN_INTERVAL_SELECTOR,
        })

        return self.async_show_form(
            step_id="init",
            data_schema=options_schema
        )
