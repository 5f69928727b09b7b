# panel.py

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import discord
from loguru import logger

from codec import DrillDown, Direction, View, decode, encode, encode_select, fit_label
from formatting import (
    COLOR_LADDER,
    apply_captions,
    page_caption,
    render_cards,
    render_home,
    render_not_found,
    render_player,
)
from navigation import (
    HOME_REQUEST,
    PAGE_SIZE,
    REGISTRY,
    TABS,
    RenderRequest,
    log_transition,
    option_prefix,
    pager_flags,
    resolve,
    row_rank,
)
from queries import SliceProvider
from status import ServerStatusClient
from supervisor import InactivitySupervisor
from tools import (
    NotFoundError,
    PanelConfig,
    PanelState,
    ProtocolError,
    TransientInfraError,
    describe_interaction,
    handle_errors,
    persist_surface_id,
)

SELECT_PLACEHOLDERS = {
    View.PLAYER: "Select a Player to View More Stats...",
    View.WEAPON_PLAYERS: "Select Weapon to View More Stats...",
    View.MAP_PLAYERS: "Select Map to View More Stats...",
}


# --- Components ---

def build_toolbar(
    active: View, select: Optional[discord.ui.Select] = None, active_page: int = 0
) -> discord.ui.View:
    """
    Tab buttons with the active tab lit, plus the list's select menu if it has
    one. The lit tab lands on `active_page`, so leaving a drill-down returns to
    the parent page it was opened from.
    """
    toolbar = discord.ui.View(timeout=None)
    for tab in TABS:
        toolbar.add_item(
            discord.ui.Button(
                label=REGISTRY[tab].label,
                style=discord.ButtonStyle.primary if tab is active else discord.ButtonStyle.secondary,
                custom_id=encode(tab, active_page if tab is active else 0),
                row=0,
            )
        )
    if select is not None:
        toolbar.add_item(select)
    return toolbar


def build_pager(
    view: View,
    page: int,
    has_previous: bool,
    has_next: bool,
    drilldown: Optional[DrillDown] = None,
) -> discord.ui.View:
    pager = discord.ui.View(timeout=None)
    pager.add_item(
        discord.ui.Button(
            label="Previous",
            style=discord.ButtonStyle.secondary,
            custom_id=encode(view, page, Direction.PREV, drilldown),
            disabled=not has_previous,
        )
    )
    pager.add_item(
        discord.ui.Button(
            label="Next",
            style=discord.ButtonStyle.secondary,
            custom_id=encode(view, page, Direction.NEXT, drilldown),
            disabled=not has_next,
        )
    )
    return pager


def select_option(child: View, row: Dict[str, Any], page: int, index: int) -> discord.SelectOption:
    if child is View.PLAYER:
        prefix = option_prefix(row_rank(row, page, index))
        name = str(row.get("name") or "")
        label = f"{prefix} {name[: max(0, 100 - (len(prefix) + 1))]}"
        return discord.SelectOption(label=label, value=str(row.get("client_id")))
    label = str(row.get("label") or "")[:100] or "—"
    return discord.SelectOption(label=label, value=fit_label(child, label))


def build_select(
    child: View,
    rows: Sequence[Dict[str, Any]],
    parent_page: int,
    selected: Optional[str] = None,
) -> Optional[discord.ui.Select]:
    """
    Select menu offering exactly the rows of the parent page. Returns None for
    an empty page since Discord rejects a menu without options.
    """
    if not rows:
        return None
    options = [select_option(child, row, parent_page, i) for i, row in enumerate(rows)]
    for option in options:
        option.default = selected is not None and option.value == str(selected)
    return discord.ui.Select(
        custom_id=encode_select(child, parent_page),
        placeholder=SELECT_PLACEHOLDERS.get(child),
        min_values=1,
        max_values=1,
        options=options,
        row=1,
    )


@dataclass
class RenderedPanel:
    """Everything both surfaces need for one state."""

    request: RenderRequest
    embeds: List[discord.Embed]
    toolbar: discord.ui.View
    pager: Optional[discord.ui.View] = None
    caption: Optional[str] = None
    has_previous: bool = False
    has_next: bool = False

    @property
    def select(self) -> Optional[discord.ui.Select]:
        for item in self.toolbar.children:
            if isinstance(item, discord.ui.Select):
                return item
        return None


# --- Rendering ---

class PanelRenderer:
    """
    Builds the toolbar and content payloads for a RenderRequest. Holds no
    state of its own besides the data sources.
    """

    def __init__(
        self,
        provider: SliceProvider,
        bot_config: PanelConfig,
        status: Optional[ServerStatusClient] = None,
    ):
        self.provider = provider
        self.bot_config = bot_config
        self.status = status
        self.builders: Dict[View, Callable[[RenderRequest], Awaitable[RenderedPanel]]] = {
            View.HOME: self.build_home,
            View.LADDER: self.build_ladder,
            View.WEAPONS: self.build_weapons,
            View.MAPS: self.build_maps,
            View.WEAPON_PLAYERS: self.build_weapon_players,
            View.MAP_PLAYERS: self.build_map_players,
            View.PLAYER: self.build_player,
        }

    async def render(self, request: RenderRequest) -> RenderedPanel:
        rendered = await self.builders[request.view](request)
        apply_captions(rendered.embeds, rendered.caption)
        return rendered

    async def build_home(self, request: RenderRequest) -> RenderedPanel:
        totals, status = await asyncio.gather(
            self.provider.home_totals(),
            self._server_status(),
        )
        return RenderedPanel(
            request=request,
            embeds=render_home(
                totals,
                self.bot_config.TIMEZONE,
                status,
                self.status.address if self.status is not None else None,
            ),
            toolbar=build_toolbar(View.HOME),
        )

    async def _server_status(self) -> Optional[Dict[str, Any]]:
        if self.status is None:
            return None
        return await self.status.fetch()

    async def _list_tab(
        self,
        request: RenderRequest,
        fetch_slice: Callable[[int, int], Awaitable[List[Dict[str, Any]]]],
        fetch_count: Callable[[], Awaitable[int]],
    ) -> RenderedPanel:
        spec = request.spec
        rows, total = await asyncio.gather(
            fetch_slice(request.offset, PAGE_SIZE),
            fetch_count(),
        )
        has_previous, has_next = pager_flags(request.page, total)
        embeds = render_cards(
            rows,
            spec.label,
            thumbnail=self.bot_config.DEFAULT_THUMBNAIL,
            offset=request.offset,
            color=COLOR_LADDER,
        )
        return RenderedPanel(
            request=request,
            embeds=embeds,
            toolbar=build_toolbar(spec.tab, build_select(spec.child, rows, request.page)),
            pager=build_pager(spec.view, request.page, has_previous, has_next),
            caption=page_caption(spec.label, request.page, total),
            has_previous=has_previous,
            has_next=has_next,
        )

    async def build_ladder(self, request: RenderRequest) -> RenderedPanel:
        return await self._list_tab(request, self.provider.ladder_slice, self.provider.ladder_count)

    async def build_weapons(self, request: RenderRequest) -> RenderedPanel:
        return await self._list_tab(request, self.provider.weapons_slice, self.provider.weapons_count)

    async def build_maps(self, request: RenderRequest) -> RenderedPanel:
        return await self._list_tab(request, self.provider.maps_slice, self.provider.maps_count)

    async def _drill_down(
        self,
        request: RenderRequest,
        fetch_slice: Callable[..., Awaitable[List[Dict[str, Any]]]],
        fetch_count: Callable[[str], Awaitable[int]],
        fetch_parent: Callable[[int, int], Awaitable[List[Dict[str, Any]]]],
    ) -> RenderedPanel:
        spec = request.spec
        label = request.param or ""
        parent_page = request.select_page
        # The parent rows are re-read so the select keeps matching the parent page.
        rows, total, parent_rows = await asyncio.gather(
            fetch_slice(label, request.offset, PAGE_SIZE),
            fetch_count(label),
            fetch_parent(parent_page * PAGE_SIZE, PAGE_SIZE),
        )
        matched = (rows[0].get("matched_label") if rows else None) or label
        if rows:
            embeds = render_cards(
                rows,
                f"{spec.label}: {matched}",
                thumbnail=self.bot_config.DEFAULT_THUMBNAIL,
                offset=request.offset,
            )
        else:
            embeds = [render_not_found(label)]
        has_previous, has_next = pager_flags(request.page, total)
        return RenderedPanel(
            request=request,
            embeds=embeds,
            toolbar=build_toolbar(
                spec.tab,
                build_select(spec.view, parent_rows, parent_page, selected=label),
                active_page=parent_page,
            ),
            pager=build_pager(
                spec.view, request.page, has_previous, has_next, DrillDown(label, parent_page)
            ),
            caption=page_caption(matched, request.page, total),
            has_previous=has_previous,
            has_next=has_next,
        )

    async def build_weapon_players(self, request: RenderRequest) -> RenderedPanel:
        return await self._drill_down(
            request,
            self.provider.weapon_players_slice,
            self.provider.weapon_players_count,
            self.provider.weapons_slice,
        )

    async def build_map_players(self, request: RenderRequest) -> RenderedPanel:
        return await self._drill_down(
            request,
            self.provider.map_players_slice,
            self.provider.map_players_count,
            self.provider.maps_slice,
        )

    async def build_player(self, request: RenderRequest) -> RenderedPanel:
        parent_page = request.select_page
        card, ladder_rows = await asyncio.gather(
            self.provider.player_card(request.param or ""),
            self.provider.ladder_slice(parent_page * PAGE_SIZE, PAGE_SIZE),
        )
        caption = f"Ladder • Page {parent_page + 1}"
        try:
            embeds = [render_player(card, self.bot_config.DEFAULT_THUMBNAIL)]
        except NotFoundError as e:
            logger.info(f"No player card: {e}")
            embeds, caption = [render_not_found("this player")], None
        return RenderedPanel(
            request=request,
            embeds=embeds,
            toolbar=build_toolbar(
                View.LADDER,
                build_select(View.PLAYER, ladder_rows, parent_page, selected=request.param),
                active_page=parent_page,
            ),
            caption=caption,
        )


# --- The panel of one channel ---

def _edit_clicked(interaction: discord.Interaction, payload: Dict[str, Any]) -> Awaitable[Any]:
    if interaction.response.is_done():
        return interaction.edit_original_response(**payload)
    return interaction.response.edit_message(**payload)


class Panel:
    """
    Ties a channel's PanelState to the renderer and the Discord surfaces:
    applies transitions, keeps both messages in step and owns the idle reset.
    """

    def __init__(
        self,
        bot: discord.Client,
        renderer: PanelRenderer,
        state: PanelState,
        bot_config: PanelConfig,
    ):
        self.bot = bot
        self.renderer = renderer
        self.state = state
        self.bot_config = bot_config

    async def _channel(self) -> Optional[discord.abc.Messageable]:
        channel = self.bot.get_channel(self.state.channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(self.state.channel_id)
            except discord.HTTPException as e:
                logger.error(f"Could not fetch panel channel {self.state.channel_id}: {e}")
                return None
        return channel

    async def handle(self, interaction: discord.Interaction) -> bool:
        """Decodes a click on one of the surfaces and applies the transition."""
        data = interaction.data or {}
        custom_id = data.get("custom_id")
        message_id = interaction.message.id if interaction.message else None
        logger.debug(describe_interaction(interaction))

        if self.state.supervisor is not None:
            self.state.supervisor.touch(message_id, custom_id)
        if not self.state.owns(message_id):
            raise ProtocolError(f"message {message_id} is not a panel surface")

        request = resolve(decode(custom_id), data.get("values") or ())
        # Acknowledge before any query runs; the clicked message is edited afterwards.
        await interaction.response.defer()
        return await self.show(request, interaction)

    async def show(
        self, request: RenderRequest, interaction: Optional[discord.Interaction] = None
    ) -> bool:
        request = request.with_generation(self.state.begin_render())
        log_transition(request)
        rendered = await self.renderer.render(request)
        return await self.publish(rendered, interaction)

    async def reset_home(self) -> None:
        await self.show(HOME_REQUEST)

    async def publish(
        self, rendered: RenderedPanel, interaction: Optional[discord.Interaction] = None
    ) -> bool:
        """
        Edits both surfaces at once. The message a click came from is edited
        through the interaction, in the same batch as the other surface's edit.
        Returns False when a newer transition made this one stale.
        """
        state = self.state

        if state.is_stale(rendered.request.generation):
            logger.debug(f"Dropping stale render of {rendered.request.view.value}")
            if interaction is not None and not interaction.response.is_done():
                await interaction.response.defer()
            return False

        channel = await self._channel()
        if channel is None:
            raise TransientInfraError(f"panel channel {state.channel_id} is unavailable")

        toolbar_payload = {"embeds": [], "view": rendered.toolbar}
        content_payload = {"embeds": rendered.embeds, "view": rendered.pager}
        source = interaction.message.id if interaction is not None and interaction.message else None

        surfaces, ops = [], []
        if state.is_toolbar(source):
            surfaces += ["toolbar", "content"]
            ops.append(_edit_clicked(interaction, toolbar_payload))
            ops.append(channel.get_partial_message(state.content_message_id).edit(**content_payload))
        elif state.owns(source):
            surfaces += ["content", "toolbar"]
            ops.append(_edit_clicked(interaction, content_payload))
            ops.append(channel.get_partial_message(state.nav_message_id).edit(**toolbar_payload))
        else:
            surfaces += ["toolbar", "content"]
            ops.append(channel.get_partial_message(state.nav_message_id).edit(**toolbar_payload))
            ops.append(channel.get_partial_message(state.content_message_id).edit(**content_payload))

        results = await asyncio.gather(*ops, return_exceptions=True)
        failures = [
            (surface, result)
            for surface, result in zip(surfaces, results)
            if isinstance(result, BaseException)
        ]
        for surface, error in failures:
            logger.error(f"Failed to update {surface} surface: {error}")
        if failures and len(failures) == len(ops):
            raise TransientInfraError("no panel surface could be updated")
        return True

    async def _locate(self, channel: Any, message_id: Optional[int]) -> Optional[discord.Message]:
        if not message_id:
            return None
        try:
            return await channel.fetch_message(message_id)
        except discord.NotFound:
            logger.warning(f"Panel message {message_id} no longer exists, a new one will be posted")
            return None

    async def ensure_surfaces(self) -> bool:
        """
        Finds the toolbar and content messages from the saved ids, posts fresh
        ones where they are missing, and renders Home into both.
        """
        channel = await self._channel()
        if channel is None:
            return False

        request = HOME_REQUEST.with_generation(self.state.begin_render())
        rendered = await self.renderer.render(request)

        nav_message = await self._locate(channel, self.state.nav_message_id)
        if nav_message is None:
            nav_message = await channel.send(view=rendered.toolbar)
            self.state.nav_message_id = nav_message.id
            persist_surface_id(self.bot_config.ENV_FILE, "UI_NAV_MESSAGE_ID", nav_message.id)
            logger.info(f"Posted new toolbar message {nav_message.id}")

        content_message = await self._locate(channel, self.state.content_message_id)
        if content_message is None:
            content_message = await channel.send(embeds=rendered.embeds)
            self.state.content_message_id = content_message.id
            persist_surface_id(self.bot_config.ENV_FILE, "UI_CONTENT_MESSAGE_ID", content_message.id)
            logger.info(f"Posted new content message {content_message.id}")

        return await self.publish(rendered)

    async def start_supervisor(self) -> InactivitySupervisor:
        if self.state.supervisor is None:
            self.state.supervisor = InactivitySupervisor(
                self.bot_config.INACTIVITY_SECONDS,
                surfaces=lambda: (self.state.nav_message_id, self.state.content_message_id),
                on_timeout=self.reset_home,
            )
        await self.state.supervisor.install()
        return self.state.supervisor

    async def close(self) -> None:
        if self.state.supervisor is not None:
            await self.state.supervisor.shutdown()


# --- Interaction entry points ---

@handle_errors
async def handle_button(panel: Panel, interaction: discord.Interaction) -> None:
    """Button clicks on either surface: tab switches and pager buttons."""
    await panel.handle(interaction)


@handle_errors
async def handle_select(panel: Panel, interaction: discord.Interaction) -> None:
    """Select menu choices on the toolbar: opens a drill-down."""
    if not (interaction.data or {}).get("values"):
        raise ProtocolError("select interaction without values")
    await panel.handle(interaction)
