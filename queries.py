# queries.py

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import aiomysql
from loguru import logger

from tools import PanelConfig, TransientInfraError

PLAYERSTATS = "xlr_playerstats"

# Highest-used alias per client, newest first on ties.
PREFERRED_ALIAS_JOIN = """
LEFT JOIN (
  SELECT
    client_id,
    SUBSTRING_INDEX(
      GROUP_CONCAT(alias ORDER BY num_used DESC, time_edit DESC SEPARATOR '||'),
      '||', 1
    ) AS alias
  FROM aliases
  GROUP BY client_id
) a ON a.client_id = c.id
"""

PLAYER_NAME = "COALESCE(NULLIF(c.preferred_name,''), a.alias, c.name)"

# --- Home ---

TOTAL_PLAYERS = "SELECT COUNT(*) AS totalPlayers FROM clients"
TOTAL_KILLS = f"SELECT COALESCE(SUM(kills), 0) AS totalKills FROM {PLAYERSTATS}"
TOTAL_ROUNDS = f"SELECT COALESCE(SUM(rounds), 0) AS totalRounds FROM {PLAYERSTATS}"

FAVORITE_WEAPON = """
SELECT w.name AS label, SUM(wu.kills) AS kills
FROM xlr_weaponusage wu
JOIN xlr_weaponstats w ON w.id = wu.weapon_id
GROUP BY w.id, w.name
ORDER BY kills DESC
LIMIT 1
"""

FAVORITE_MAP = """
SELECT m.name AS label, SUM(pm.rounds) AS rounds
FROM xlr_playermaps pm
JOIN xlr_mapstats m ON m.id = pm.map_id
GROUP BY m.id, m.name
ORDER BY rounds DESC
LIMIT 1
"""

# --- Ladder ---

LADDER_SLICE = f"""
SELECT
  c.id AS client_id,
  {PLAYER_NAME} AS name,
  agg.skill, agg.kills, agg.deaths,
  CASE WHEN agg.deaths = 0 THEN agg.kills ELSE ROUND(agg.kills / agg.deaths, 2) END AS ratio,
  agg.assists, agg.rounds
FROM (
  SELECT s.client_id,
         SUM(s.kills) AS kills, SUM(s.deaths) AS deaths,
         SUM(s.assists) AS assists, SUM(s.rounds) AS rounds,
         MAX(s.skill) AS skill
  FROM {PLAYERSTATS} s
  GROUP BY s.client_id
  HAVING (SUM(s.kills) > 0 OR SUM(s.deaths) > 0 OR SUM(s.assists) > 0)
) agg
JOIN clients c ON c.id = agg.client_id
{PREFERRED_ALIAS_JOIN}
ORDER BY agg.skill DESC
LIMIT %s OFFSET %s
"""

LADDER_COUNT = f"""
SELECT COUNT(*) AS cnt
FROM (
  SELECT s.client_id
  FROM {PLAYERSTATS} s
  GROUP BY s.client_id
  HAVING (SUM(s.kills) > 0 OR SUM(s.deaths) > 0 OR SUM(s.assists) > 0)
) t
"""

# --- Weapons / Maps ---

WEAPONS_SLICE = """
SELECT w.name AS label, SUM(wu.kills) AS kills, SUM(wu.suicides) AS suicides
FROM xlr_weaponusage wu
JOIN xlr_weaponstats w ON w.id = wu.weapon_id
GROUP BY w.id, w.name
ORDER BY kills DESC
LIMIT %s OFFSET %s
"""

WEAPONS_COUNT = "SELECT COUNT(*) AS cnt FROM xlr_weaponstats"

MAPS_SLICE = """
SELECT m.name AS label, SUM(pm.rounds) AS rounds, SUM(pm.kills) AS kills, SUM(pm.suicides) AS suicides
FROM xlr_playermaps pm
JOIN xlr_mapstats m ON m.id = pm.map_id
GROUP BY m.id, m.name
ORDER BY rounds DESC
LIMIT %s OFFSET %s
"""

MAPS_COUNT = "SELECT COUNT(*) AS cnt FROM xlr_mapstats"

# --- Drill-downs: players for one weapon / one map ---
# The filter matches the first name containing the label, or the numeric id.

WEAPON_PLAYERS_SLICE = f"""
SELECT
  c.id AS client_id,
  {PLAYER_NAME} AS name,
  sagg.skill AS skill,
  wuagg.kills AS kills,
  wuagg.deaths AS deaths,
  CASE WHEN wuagg.deaths = 0 THEN wuagg.kills ELSE ROUND(wuagg.kills / wuagg.deaths, 2) END AS ratio,
  wsel.name AS matched_label
FROM (
  SELECT client_id, MAX(skill) AS skill FROM {PLAYERSTATS} GROUP BY client_id
) sagg
JOIN clients c ON c.id = sagg.client_id
{PREFERRED_ALIAS_JOIN}
JOIN (
  SELECT id, name FROM xlr_weaponstats
  WHERE (name LIKE %s OR id = %s)
  ORDER BY name
  LIMIT 1
) wsel ON 1=1
JOIN (
  SELECT player_id, weapon_id, SUM(kills) AS kills, SUM(deaths) AS deaths
  FROM xlr_weaponusage
  GROUP BY player_id, weapon_id
) wuagg ON wuagg.weapon_id = wsel.id AND wuagg.player_id = c.id
WHERE (wuagg.kills > 0 OR wuagg.deaths > 0)
ORDER BY wuagg.kills DESC
LIMIT %s OFFSET %s
"""

WEAPON_PLAYERS_COUNT = """
SELECT COUNT(*) AS cnt
FROM (
  SELECT wu.player_id
  FROM (
    SELECT id FROM xlr_weaponstats
    WHERE (name LIKE %s OR id = %s)
    ORDER BY name
    LIMIT 1
  ) wsel
  JOIN xlr_weaponusage wu ON wu.weapon_id = wsel.id
  GROUP BY wu.player_id
  HAVING (SUM(wu.kills) > 0 OR SUM(wu.deaths) > 0)
) t
"""

MAP_PLAYERS_SLICE = f"""
SELECT
  c.id AS client_id,
  {PLAYER_NAME} AS name,
  sagg.skill AS skill,
  pmagg.kills AS kills,
  pmagg.deaths AS deaths,
  CASE WHEN pmagg.deaths = 0 THEN pmagg.kills ELSE ROUND(pmagg.kills / pmagg.deaths, 2) END AS ratio,
  pmagg.rounds AS rounds,
  msel.name AS matched_label
FROM (
  SELECT client_id, MAX(skill) AS skill FROM {PLAYERSTATS} GROUP BY client_id
) sagg
JOIN clients c ON c.id = sagg.client_id
{PREFERRED_ALIAS_JOIN}
JOIN (
  SELECT id, name FROM xlr_mapstats
  WHERE (name LIKE %s OR id = %s)
  ORDER BY name
  LIMIT 1
) msel ON 1=1
JOIN (
  SELECT player_id, map_id, SUM(kills) AS kills, SUM(deaths) AS deaths, SUM(rounds) AS rounds
  FROM xlr_playermaps
  GROUP BY player_id, map_id
) pmagg ON pmagg.map_id = msel.id AND pmagg.player_id = c.id
WHERE (pmagg.kills > 0 OR pmagg.deaths > 0)
ORDER BY pmagg.rounds DESC
LIMIT %s OFFSET %s
"""

MAP_PLAYERS_COUNT = """
SELECT COUNT(*) AS cnt
FROM (
  SELECT pm.player_id
  FROM (
    SELECT id FROM xlr_mapstats
    WHERE (name LIKE %s OR id = %s)
    ORDER BY name
    LIMIT 1
  ) msel
  JOIN xlr_playermaps pm ON pm.map_id = msel.id
  GROUP BY pm.player_id
  HAVING (SUM(pm.kills) > 0 OR SUM(pm.deaths) > 0)
) t
"""

# --- Player detail ---

PLAYER_CARD = f"""
SELECT
  c.id AS client_id,
  {PLAYER_NAME} AS name,
  COALESCE(ROUND(s.skill, 2), 0) AS skill,
  COALESCE(s.kills, 0) AS kills,
  COALESCE(s.deaths, 0) AS deaths,
  COALESCE(s.assists, 0) AS assists,
  COALESCE(s.rounds, 0) AS rounds,
  COALESCE(s.winstreak, 0) AS winstreak,
  COALESCE(s.losestreak, 0) AS losestreak,
  c.connections AS connections,
  c.time_edit AS time_edit
FROM clients c
LEFT JOIN {PLAYERSTATS} s ON s.client_id = c.id
{PREFERRED_ALIAS_JOIN}
WHERE c.id = %s
LIMIT 1
"""


def filter_params(label: str) -> tuple:
    """LIKE pattern plus numeric id (or -1) for a free-text weapon/map filter."""
    as_id = int(label) if label.strip().isdigit() else -1
    return f"%{label}%", as_id


def with_ranks(rows: Sequence[Dict[str, Any]], offset: int) -> List[Dict[str, Any]]:
    return [{**row, "rank": offset + i + 1} for i, row in enumerate(rows)]


async def create_pool(bot_config: PanelConfig) -> aiomysql.Pool:
    logger.info(
        f"Connecting to MySQL {bot_config.DB_HOST}:{bot_config.DB_PORT}/{bot_config.DB_NAME}"
    )
    return await aiomysql.create_pool(
        host=bot_config.DB_HOST,
        port=bot_config.DB_PORT,
        user=bot_config.DB_USER,
        password=bot_config.DB_PASSWORD or "",
        db=bot_config.DB_NAME,
        maxsize=bot_config.DB_POOL_SIZE,
        autocommit=True,
    )


class SliceProvider:
    """
    Read-only projections of the XLRstats tables, one page at a time.
    Every public method is a pure function of its arguments.
    """

    def __init__(self, pool: aiomysql.Pool):
        self.pool = pool

    async def _fetch(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        try:
            async with self.pool.acquire() as conn:
                async with conn.cursor(aiomysql.DictCursor) as cur:
                    await cur.execute(sql, tuple(params))
                    return list(await cur.fetchall())
        except (aiomysql.Error, OSError, asyncio.TimeoutError) as e:
            raise TransientInfraError(f"query failed: {e}") from e

    async def _count(self, sql: str, params: Sequence[Any] = ()) -> int:
        rows = await self._fetch(sql, params)
        if not rows:
            return 0
        return int(rows[0].get("cnt") or 0)

    async def home_totals(self) -> Dict[str, Any]:
        players, kills, rounds, weapon, game_map = await asyncio.gather(
            self._fetch(TOTAL_PLAYERS),
            self._fetch(TOTAL_KILLS),
            self._fetch(TOTAL_ROUNDS),
            self._fetch(FAVORITE_WEAPON),
            self._fetch(FAVORITE_MAP),
        )
        fav_weapon = weapon[0] if weapon else {}
        fav_map = game_map[0] if game_map else {}
        return {
            "totalPlayers": int(players[0]["totalPlayers"] or 0) if players else 0,
            "totalKills": int(kills[0]["totalKills"] or 0) if kills else 0,
            "totalRounds": int(rounds[0]["totalRounds"] or 0) if rounds else 0,
            "favoriteWeapon": {
                "label": fav_weapon.get("label") or "—",
                "kills": int(fav_weapon.get("kills") or 0),
            },
            "favoriteMap": {
                "label": fav_map.get("label") or "—",
                "rounds": int(fav_map.get("rounds") or 0),
            },
        }

    async def ladder_slice(self, offset: int = 0, limit: int = 10) -> List[Dict[str, Any]]:
        return with_ranks(await self._fetch(LADDER_SLICE, (limit, offset)), offset)

    async def ladder_count(self) -> int:
        return await self._count(LADDER_COUNT)

    async def weapons_slice(self, offset: int = 0, limit: int = 10) -> List[Dict[str, Any]]:
        return with_ranks(await self._fetch(WEAPONS_SLICE, (limit, offset)), offset)

    async def weapons_count(self) -> int:
        return await self._count(WEAPONS_COUNT)

    async def maps_slice(self, offset: int = 0, limit: int = 10) -> List[Dict[str, Any]]:
        return with_ranks(await self._fetch(MAPS_SLICE, (limit, offset)), offset)

    async def maps_count(self) -> int:
        return await self._count(MAPS_COUNT)

    async def weapon_players_slice(
        self, label: str, offset: int = 0, limit: int = 10
    ) -> List[Dict[str, Any]]:
        rows = await self._fetch(WEAPON_PLAYERS_SLICE, (*filter_params(label), limit, offset))
        return with_ranks(rows, offset)

    async def weapon_players_count(self, label: str) -> int:
        return await self._count(WEAPON_PLAYERS_COUNT, filter_params(label))

    async def map_players_slice(
        self, label: str, offset: int = 0, limit: int = 10
    ) -> List[Dict[str, Any]]:
        rows = await self._fetch(MAP_PLAYERS_SLICE, (*filter_params(label), limit, offset))
        return with_ranks(rows, offset)

    async def map_players_count(self, label: str) -> int:
        return await self._count(MAP_PLAYERS_COUNT, filter_params(label))

    async def player_card(self, client_id: str) -> Optional[Dict[str, Any]]:
        if not str(client_id).isdigit():
            return None
        rows = await self._fetch(PLAYER_CARD, (int(client_id),))
        return rows[0] if rows else None
