# formatting.py

import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import discord

from navigation import rank_label, total_pages
from tools import NotFoundError

# Braille blank: renders as whitespace but is not trimmed by Discord.
INVISIBLE = "⠀"
MAX_FOOTER = 2048
MAX_EMBEDS = 10

COLOR_HOME = discord.Color.blurple()
COLOR_LADDER = discord.Color.from_rgb(0x32, 0xD2, 0x96)
COLOR_PLAYER = discord.Color.from_rgb(0x2B, 0x7C, 0xFF)
COLOR_EMPTY = discord.Color.dark_grey()

# Quake-style colour escapes in server names, e.g. "^1Red^7White".
COLOR_CODE = re.compile(r"\^\d")


def strip_color_codes(text: str) -> str:
    return COLOR_CODE.sub("", text)


def kd_ratio(kills: Any, deaths: Any) -> str:
    kills, deaths = int(kills or 0), int(deaths or 0)
    if deaths == 0:
        return str(kills)
    return f"{kills / deaths:.2f}"


# --- Captions ---

def get_caption(embed: discord.Embed) -> Optional[str]:
    return embed.footer.text if embed.footer and embed.footer.text else None


def set_caption(embed: discord.Embed, text: str) -> None:
    embed.set_footer(text=text[:MAX_FOOTER])


def padding_for(caption: str) -> str:
    """Invisible filler roughly as wide as the real caption."""
    length = min(max(math.floor(len(caption) * 0.65), 1), MAX_FOOTER)
    return INVISIBLE * length


def apply_captions(embeds: Sequence[discord.Embed], caption: Optional[str] = None) -> None:
    """
    Gives every card but the last an invisible caption and puts the real one
    on the last card. Without an explicit caption the last card's own is kept.
    """
    if not embeds:
        return
    caption = caption or get_caption(embeds[-1]) or INVISIBLE
    filler = padding_for(caption)
    for embed in embeds[:-1]:
        set_caption(embed, filler)
    set_caption(embeds[-1], caption)


def page_caption(label: str, page: int, total: int) -> str:
    return f"{label} • Page {page + 1} of {total_pages(total)}"


# --- Cards ---

def _describe_row(row: Dict[str, Any]) -> str:
    parts = []
    if row.get("skill") is not None:
        parts.append(f"Skill: {row['skill']}")
    if row.get("kills") is not None and row.get("deaths") is not None:
        parts.append(f"K/D: {kd_ratio(row['kills'], row['deaths'])}")
        parts.append(f"K: {row['kills']} D: {row['deaths']}")
    elif row.get("kills") is not None:
        parts.append(f"Kills: {row['kills']}")
    if row.get("rounds") is not None:
        parts.append(f"Rounds: {row['rounds']}")
    if row.get("suicides"):
        parts.append(f"Suicides: {row['suicides']}")
    return " • ".join(parts) or "—"


def render_cards(
    rows: Sequence[Dict[str, Any]],
    title: str,
    thumbnail: Optional[str] = None,
    offset: int = 0,
    color: discord.Color = COLOR_LADDER,
) -> List[discord.Embed]:
    """One embed per row, headed by the row's rank; empty input gets an empty-state card."""
    if not rows:
        return [render_not_found(title)]

    embeds = []
    for i, row in enumerate(rows[:MAX_EMBEDS]):
        rank = row.get("rank") or offset + i + 1
        name = row.get("name") or row.get("label") or "Unknown"
        embed = discord.Embed(
            title=f"{rank_label(rank)} {name}",
            description=_describe_row(row),
            color=color,
        )
        if i == 0:
            embed.set_author(name=title)
        if thumbnail:
            embed.set_thumbnail(url=thumbnail)
        embeds.append(embed)
    return embeds


def render_not_found(what: str) -> discord.Embed:
    return discord.Embed(
        title="Nothing found",
        description=f"No stats are available for **{what}**.",
        color=COLOR_EMPTY,
    )


def server_status_field(
    status: Dict[str, Any], address: Optional[str] = None
) -> Tuple[str, str]:
    """Name and value of the Home field describing the live game server."""
    where = f"\n`{address}`" if address else ""
    if status.get("error"):
        return "🔴 Server Offline", f"Status unavailable: {status['error']}{where}"
    info = status.get("serverinfo") or {}
    players = status.get("playerinfo") or []
    hostname = strip_color_codes(str(info.get("sv_hostname") or "Unknown server"))
    game_map = info.get("mapname") or "—"
    capacity = info.get("sv_maxclients") or "?"
    return (
        "🟢 Server Online",
        f"**{hostname}**\nMap: `{game_map}`\nPlayers: {len(players)}/{capacity}{where}",
    )


def render_home(
    totals: Dict[str, Any],
    timezone: str = "UTC",
    status: Optional[Dict[str, Any]] = None,
    address: Optional[str] = None,
) -> List[discord.Embed]:
    try:
        tz = ZoneInfo(timezone)
    except ZoneInfoNotFoundError:
        tz = ZoneInfo("UTC")
    weapon = totals.get("favoriteWeapon") or {}
    game_map = totals.get("favoriteMap") or {}

    embed = discord.Embed(
        title="📊 Server Stats",
        description="Use the buttons above to browse the ladder, weapons and maps.",
        color=COLOR_HOME,
    )
    if status is not None:
        name, value = server_status_field(status, address)
        embed.add_field(name=name, value=value, inline=False)
    embed.add_field(name="Players", value=f"{totals.get('totalPlayers', 0):,}", inline=True)
    embed.add_field(name="Kills", value=f"{totals.get('totalKills', 0):,}", inline=True)
    embed.add_field(name="Rounds", value=f"{totals.get('totalRounds', 0):,}", inline=True)
    embed.add_field(
        name="Favorite Weapon",
        value=f"{weapon.get('label', '—')} ({weapon.get('kills', 0):,} kills)",
        inline=True,
    )
    embed.add_field(
        name="Favorite Map",
        value=f"{game_map.get('label', '—')} ({game_map.get('rounds', 0):,} rounds)",
        inline=True,
    )
    set_caption(embed, f"Updated {datetime.now(tz).strftime('%m-%d-%Y %H:%M %Z')}")
    return [embed]


def render_player(card: Optional[Dict[str, Any]], thumbnail: Optional[str] = None) -> discord.Embed:
    if not card:
        raise NotFoundError("player no longer has stats")
    last_seen = "—"
    if card.get("time_edit"):
        last_seen = f"<t:{int(card['time_edit'])}:R>"
    embed = discord.Embed(title=f"📊 {card.get('name', 'Unknown')}", color=COLOR_PLAYER)
    embed.add_field(name="Skill", value=str(card.get("skill", "—")), inline=True)
    embed.add_field(name="K/D", value=kd_ratio(card.get("kills"), card.get("deaths")), inline=True)
    embed.add_field(
        name="Kills / Deaths",
        value=f"{card.get('kills', 0)} / {card.get('deaths', 0)}",
        inline=True,
    )
    embed.add_field(
        name="Best Kill/Death Streak",
        value=f"{card.get('winstreak', 0)}/{card.get('losestreak', 0)}",
        inline=True,
    )
    embed.add_field(name="Rounds Played", value=str(card.get("rounds", 0)), inline=True)
    embed.add_field(name="Assists", value=str(card.get("assists", 0)), inline=True)
    embed.add_field(name="Connections", value=str(card.get("connections") or 0), inline=True)
    embed.add_field(name="Last Seen", value=last_seen, inline=True)
    if thumbnail:
        embed.set_thumbnail(url=thumbnail)
    return embed
