"""Shared fakes for the panel tests: an in-memory stats store and Discord doubles."""

import asyncio
import itertools
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from panel import Panel, PanelRenderer
from tools import PanelConfig, PanelState, TransientInfraError

CHANNEL_ID = 555
NAV_ID = 1001
CONTENT_ID = 1002


# ---------------------------------------------------------------------------
# Stats store
# ---------------------------------------------------------------------------

WEAPON_NAMES = [
    "AK47", "M16", "Shotgun", "Sniper", "Pistol", "Knife", "Grenade",
    "MP5", "Uzi", "Deagle", "Rifle", "Bazooka",
]


def _page(rows, offset, limit):
    return [{**row, "rank": offset + i + 1} for i, row in enumerate(rows[offset:offset + limit])]


class FakeSliceProvider:
    """Same surface as queries.SliceProvider, backed by lists."""

    def __init__(self, players=23, weapon_players=15):
        self.players = [
            {
                "client_id": 100 + i,
                "name": f"Player{i + 1}",
                "skill": 2000 - i * 10,
                "kills": 500 - i,
                "deaths": 100 + i,
                "rounds": 50,
            }
            for i in range(players)
        ]
        self.weapons = [
            {"label": name, "kills": 1000 - i * 50, "suicides": i}
            for i, name in enumerate(WEAPON_NAMES)
        ]
        self.maps = [
            {"label": name, "rounds": 300 - i * 10, "kills": 900 - i, "suicides": 0}
            for i, name in enumerate(["mp_crash", "mp_strike", "mp_vacant"])
        ]
        self.weapon_player_count = weapon_players
        self.calls = []
        self.fail = False

    def _record(self, name, *args):
        self.calls.append((name, args))
        if self.fail:
            raise TransientInfraError("database is down")

    async def home_totals(self):
        self._record("home_totals")
        return {
            "totalPlayers": len(self.players),
            "totalKills": 12345,
            "totalRounds": 678,
            "favoriteWeapon": {"label": "AK47", "kills": 1000},
            "favoriteMap": {"label": "mp_crash", "rounds": 300},
        }

    async def ladder_slice(self, offset=0, limit=10):
        self._record("ladder_slice", offset, limit)
        return _page(self.players, offset, limit)

    async def ladder_count(self):
        self._record("ladder_count")
        return len(self.players)

    async def weapons_slice(self, offset=0, limit=10):
        self._record("weapons_slice", offset, limit)
        return _page(self.weapons, offset, limit)

    async def weapons_count(self):
        self._record("weapons_count")
        return len(self.weapons)

    async def maps_slice(self, offset=0, limit=10):
        self._record("maps_slice", offset, limit)
        return _page(self.maps, offset, limit)

    async def maps_count(self):
        self._record("maps_count")
        return len(self.maps)

    def _matching(self, label, names):
        return next((n for n in names if label.lower() in n.lower()), None)

    def _drill_rows(self, label, names):
        matched = self._matching(label, names)
        if matched is None:
            return []
        return [
            {**player, "matched_label": matched}
            for player in self.players[: self.weapon_player_count]
        ]

    async def weapon_players_slice(self, label, offset=0, limit=10):
        self._record("weapon_players_slice", label, offset, limit)
        return _page(self._drill_rows(label, WEAPON_NAMES), offset, limit)

    async def weapon_players_count(self, label):
        self._record("weapon_players_count", label)
        return len(self._drill_rows(label, WEAPON_NAMES))

    async def map_players_slice(self, label, offset=0, limit=10):
        self._record("map_players_slice", label, offset, limit)
        return _page(self._drill_rows(label, [m["label"] for m in self.maps]), offset, limit)

    async def map_players_count(self, label):
        self._record("map_players_count", label)
        return len(self._drill_rows(label, [m["label"] for m in self.maps]))

    async def player_card(self, client_id):
        self._record("player_card", client_id)
        if not str(client_id).isdigit():
            return None
        for player in self.players:
            if player["client_id"] == int(client_id):
                return {**player, "winstreak": 5, "losestreak": 2, "assists": 7, "time_edit": 1700000000}
        return None


SERVER_ONLINE = {
    "serverinfo": {"sv_hostname": "^1Red ^7Base", "mapname": "mp_crash", "sv_maxclients": "24"},
    "playerinfo": [{"name": "Player1"}, {"name": "Player2"}, {"name": "Player3"}],
}


class FakeStatusClient:
    """Same surface as status.ServerStatusClient, answering with a fixed payload."""

    address = "203.0.113.10:28960"

    def __init__(self, payload=None):
        self.payload = SERVER_ONLINE if payload is None else payload
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        return self.payload


# ---------------------------------------------------------------------------
# Discord doubles
# ---------------------------------------------------------------------------

def not_found():
    return discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown Message")


class FakeChannel:
    """Text channel that remembers every message it posted or edited."""

    def __init__(self, channel_id=CHANNEL_ID, existing=()):
        self.id = channel_id
        self.name = "stats"
        self.messages = {}
        self._ids = itertools.count(2001)
        for message_id in existing:
            self._message(message_id)

    def _message(self, message_id):
        message = SimpleNamespace(id=message_id, edit=AsyncMock())
        self.messages[message_id] = message
        return message

    async def send(self, **kwargs):
        message = self._message(next(self._ids))
        message.sent = kwargs
        return message

    async def fetch_message(self, message_id):
        if message_id not in self.messages:
            raise not_found()
        return self.messages[message_id]

    def get_partial_message(self, message_id):
        return self.messages.get(message_id) or self._message(message_id)


class FakeResponse:
    def __init__(self):
        self.done = False
        self.edit_message = AsyncMock(side_effect=self._finish)
        self.defer = AsyncMock(side_effect=self._finish)
        self.send_message = AsyncMock(side_effect=self._finish)

    async def _finish(self, *args, **kwargs):
        self.done = True

    def is_done(self):
        return self.done


def make_interaction(custom_id, message_id=NAV_ID, values=None, component_type=2):
    interaction = MagicMock(spec=discord.Interaction)
    data = {"custom_id": custom_id, "component_type": component_type}
    if values is not None:
        data["values"] = values
    interaction.data = data
    interaction.message = SimpleNamespace(id=message_id)
    interaction.channel = SimpleNamespace(name="stats")
    interaction.user = SimpleNamespace(name="tester")
    interaction.response = FakeResponse()
    interaction.followup = SimpleNamespace(send=AsyncMock())
    interaction.edit_original_response = AsyncMock()
    return interaction


def make_config(**overrides):
    settings = dict(
        GUILD_ID=1,
        UI_CHANNEL_ID=CHANNEL_ID,
        UI_NAV_MESSAGE_ID=None,
        UI_CONTENT_MESSAGE_ID=None,
        INACTIVITY_SECONDS=120,
        DEFAULT_THUMBNAIL=None,
        TIMEZONE="UTC",
        ENV_FILE=".env.test",
        DB_HOST="localhost",
        DB_PORT=3306,
        DB_NAME="stats",
        DB_USER="user",
        DB_PASSWORD="",
        DB_POOL_SIZE=2,
    )
    settings.update(overrides)
    return PanelConfig(**settings)


async def wait_until(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def provider():
    return FakeSliceProvider()


@pytest.fixture
def bot_config():
    return make_config()


@pytest.fixture
def channel():
    return FakeChannel(existing=(NAV_ID, CONTENT_ID))


@pytest.fixture
def bot(channel):
    return SimpleNamespace(get_channel=lambda channel_id: channel, fetch_channel=AsyncMock())


@pytest.fixture
def panel(bot, provider, bot_config):
    state = PanelState(channel_id=CHANNEL_ID, nav_message_id=NAV_ID, content_message_id=CONTENT_ID)
    return Panel(bot, PanelRenderer(provider, bot_config), state, bot_config)


@pytest.fixture
def persisted(monkeypatch):
    saved = {}
    monkeypatch.setattr(
        "panel.persist_surface_id",
        lambda env_file, key, message_id: saved.__setitem__(key, message_id),
    )
    return saved
