from __future__ import annotations

from unittest.mock import patch

import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry

from homeassistant import config_entries
from homeassistant.const import CONF_HOST, CONF_PASSWORD, CONF_SCAN_INTERVAL, CONF_USERNAME
from homeassistant.core import HomeAssistant
from homeassistant.data_entry_flow import FlowResultType

from custom_components.ipfire_traffic.api_client import (
    IPFireAuthenticationError,
    IPFireConnectionError,
    IPFireResponseError,
    TrafficCounters,
)
from custom_components.ipfire_traffic.const import DOMAIN

from .const import ENTRY_DATA

VALIDATE = "custom_components.ipfire_traffic.config_flow.IPFireApiClient.async_validate"
SETUP_ENTRY = "custom_components.ipfire_traffic.async_setup_entry"


async def test_user_step_creates_entry(hass: HomeAssistant) -> None:
    result = await hass.config_entries.flow.async_init(
        DOMAIN, context={"source": config_entries.SOURCE_USER}
    )
    assert result["type"] is FlowResultType.FORM
    assert result["errors"] == {}

    with patch(VALIDATE, return_value=TrafficCounters(1000, 500)), patch(
        SETUP_ENTRY, return_value=True
    ):
        result = await hass.config_entries.flow.async_configure(result["flow_id"], ENTRY_DATA)
        await hass.async_block_till_done()

    assert result["type"] is FlowResultType.CREATE_ENTRY
    assert result["title"] == "IPFire (ipfire.lan)"
    assert result["data"][CONF_HOST] == "ipfire.lan"
    assert result["result"].unique_id == "ipfire.lan:444"


@pytest.mark.parametrize(
    ("error", "reason"),
    [
        (IPFireAuthenticationError("401"), "invalid_auth"),
        (IPFireConnectionError("refused"), "cannot_connect"),
        (IPFireResponseError("<html/>"), "invalid_response"),
        (RuntimeError("boom"), "unknown"),
    ],
)
async def test_user_step_errors(hass: HomeAssistant, error: Exception, reason: str) -> None:
    result = await hass.config_entries.flow.async_init(
        DOMAIN, context={"source": config_entries.SOURCE_USER}
    )

    with patch(VALIDATE, side_effect=error):
        result = await hass.config_entries.flow.async_configure(result["flow_id"], ENTRY_DATA)

    assert result["type"] is FlowResultType.FORM
    assert result["errors"] == {"base": reason}


async def test_user_step_aborts_on_same_host_and_port(hass: HomeAssistant) -> None:
    MockConfigEntry(domain=DOMAIN, unique_id="ipfire.lan:444", data=ENTRY_DATA).add_to_hass(hass)

    result = await hass.config_entries.flow.async_init(
        DOMAIN, context={"source": config_entries.SOURCE_USER}
    )
    with patch(VALIDATE, return_value=TrafficCounters(1000, 500)) as validate:
        result = await hass.config_entries.flow.async_configure(result["flow_id"], ENTRY_DATA)

    assert result["type"] is FlowResultType.ABORT
    assert result["reason"] == "already_configured"
    validate.assert_not_called()


async def test_reauth_updates_credentials(hass: HomeAssistant) -> None:
    entry = MockConfigEntry(domain=DOMAIN, unique_id="ipfire.lan:444", data=ENTRY_DATA)
    entry.add_to_hass(hass)

    result = await entry.start_reauth_flow(hass)
    assert result["type"] is FlowResultType.FORM
    assert result["step_id"] == "reauth_confirm"

    with patch(VALIDATE, side_effect=IPFireAuthenticationError("401")):
        result = await hass.config_entries.flow.async_configure(
            result["flow_id"], {CONF_USERNAME: "admin", CONF_PASSWORD: "still-wrong"}
        )
    assert result["errors"] == {"base": "invalid_auth"}

    with patch(VALIDATE, return_value=TrafficCounters(1000, 500)), patch(
        SETUP_ENTRY, return_value=True
    ) as setup_entry:
        result = await hass.config_entries.flow.async_configure(
            result["flow_id"], {CONF_USERNAME: "root", CONF_PASSWORD: "new-secret"}
        )
        await hass.async_block_till_done()

    assert result["type"] is FlowResultType.ABORT
    assert result["reason"] == "reauth_successful"
    assert entry.data[CONF_USERNAME] == "root"
    assert entry.data[CONF_PASSWORD] == "new-secret"
    assert entry.data[CONF_HOST] == "ipfire.lan"
    assert setup_entry.called


async def test_options_flow_sets_scan_interval(hass: HomeAssistant) -> None:
    entry = MockConfigEntry(domain=DOMAIN, unique_id="ipfire.lan:444", data=ENTRY_DATA)
    entry.add_to_hass(hass)

    result = await hass.config_entries.options.async_init(entry.entry_id)
    assert result["type"] is FlowResultType.FORM

    result = await hass.config_entries.options.async_configure(
        result["flow_id"], {CONF_SCAN_INTERVAL: 30}
    )

    assert result["type"] is FlowResultType.CREATE_ENTRY
    assert entry.options[CONF_SCAN_INTERVAL] == 30
