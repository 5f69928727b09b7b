"""Tests for configuration loading, panel state and the interaction error wrapper."""

import os
from types import SimpleNamespace

import pytest

from conftest import make_interaction
from tools import (
    PanelConfig,
    PanelState,
    ProtocolError,
    describe_interaction,
    handle_errors,
    persist_surface_id,
    sanitize_channel_name,
)


def test_config_reads_module_and_environment():
    module = SimpleNamespace(GUILD_ID=1, UI_CHANNEL_ID=2, DB_NAME="stats", INACTIVITY_SECONDS=30)
    env = {"DB_USER": "bot", "DB_PASSWORD": "pw", "UI_NAV_MESSAGE_ID": "11", "UI_CONTENT_MESSAGE_ID": "junk"}
    cfg = PanelConfig.from_config_module(module, env)
    assert cfg.INACTIVITY_SECONDS == 30.0
    assert cfg.UI_NAV_MESSAGE_ID == 11
    assert cfg.UI_CONTENT_MESSAGE_ID is None
    assert (cfg.DB_HOST, cfg.DB_PORT, cfg.TIMEZONE) == ("db", 3306, "UTC")
    assert cfg.missing_settings() == []


def test_server_status_settings():
    cfg = PanelConfig.from_config_module(SimpleNamespace(RCON_IP="203.0.113.10", RCON_PORT="28961"), {})
    assert (cfg.RCON_IP, cfg.RCON_PORT) == ("203.0.113.10", 28961)
    cfg = PanelConfig.from_config_module(SimpleNamespace(RCON_IP=""), {})
    assert (cfg.RCON_IP, cfg.RCON_PORT) == (None, 28960)


def test_missing_settings_are_reported():
    cfg = PanelConfig.from_config_module(SimpleNamespace(GUILD_ID=0), {})
    assert cfg.missing_settings() == ["GUILD_ID", "UI_CHANNEL_ID", "DB_NAME", "DB_USER"]


def test_state_generations():
    state = PanelState(channel_id=1, nav_message_id=10, content_message_id=20)
    first = state.begin_render()
    second = state.begin_render()
    assert state.is_stale(first)
    assert not state.is_stale(second)
    assert state.owns(10) and state.owns(20) and not state.owns(30) and not state.owns(None)
    assert state.is_toolbar(10) and not state.is_toolbar(20)


def test_sanitize_channel_name():
    assert sanitize_channel_name("📊stats") == "stats"


def test_describe_interaction():
    text = describe_interaction(make_interaction("ui:ladder", 7))
    assert "ui:ladder" in text and "msg=7" in text and "#stats" in text


def test_persist_surface_id(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("BOT_TOKEN=abc\n")
    monkeypatch.delenv("UI_NAV_MESSAGE_ID", raising=False)
    persist_surface_id(str(env_file), "UI_NAV_MESSAGE_ID", 1234)
    contents = env_file.read_text()
    assert "BOT_TOKEN=abc" in contents
    assert "UI_NAV_MESSAGE_ID" in contents and "1234" in contents
    assert os.environ["UI_NAV_MESSAGE_ID"] == "1234"


async def test_handle_errors_passes_results_through():
    @handle_errors
    async def ok(interaction):
        return "done"

    assert await ok(make_interaction("ui:home")) == "done"


async def test_handle_errors_defers_protocol_errors():
    @handle_errors
    async def bad(interaction):
        raise ProtocolError("nope")

    click = make_interaction("ui:home")
    await bad(click)
    click.response.defer.assert_awaited_once()
    click.response.send_message.assert_not_awaited()


async def test_handle_errors_apologises_once_answered():
    @handle_errors
    async def broken(interaction):
        await interaction.response.defer()
        raise RuntimeError("boom")

    click = make_interaction("ui:home")
    await broken(click)
    click.followup.send.assert_awaited_once()
    assert click.followup.send.call_args.kwargs["ephemeral"] is True


async def test_handle_errors_without_interaction_only_logs():
    calls = []

    @handle_errors
    async def broken(value):
        calls.append(value)
        raise RuntimeError("boom")

    await broken("not an interaction")
    assert calls == ["not an interaction"]


@pytest.mark.parametrize("value", ["", None])
def test_blank_surface_ids_are_none(value):
    env = {} if value is None else {"UI_NAV_MESSAGE_ID": value}
    cfg = PanelConfig.from_config_module(SimpleNamespace(), env)
    assert cfg.UI_NAV_MESSAGE_ID is None
