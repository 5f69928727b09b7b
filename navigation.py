# navigation.py

from dataclasses import dataclass, replace
from typing import Dict, Optional, Sequence, Tuple

from loguru import logger

from codec import DrillPageTurn, DrillSelect, PageTurn, Request, TabSwitch, View
from tools import ProtocolError

PAGE_SIZE = 10
MEDALS = ("🥇", "🥈", "🥉")


@dataclass(frozen=True)
class ViewSpec:
    """
    Static description of one navigable view.

    `tab` is the toolbar button lit while the view is shown (children light
    their parent's tab). `parent` is the list a child was drilled into from,
    `child` the view its select menu opens.
    """

    view: View
    label: str
    tab: View
    parent: Optional[View] = None
    child: Optional[View] = None
    paged: bool = True

    @property
    def is_tab(self) -> bool:
        return self.parent is None


REGISTRY: Dict[View, ViewSpec] = {
    View.HOME: ViewSpec(View.HOME, "Home", tab=View.HOME, paged=False),
    View.LADDER: ViewSpec(View.LADDER, "Ladder", tab=View.LADDER, child=View.PLAYER),
    View.WEAPONS: ViewSpec(View.WEAPONS, "Weapons", tab=View.WEAPONS, child=View.WEAPON_PLAYERS),
    View.MAPS: ViewSpec(View.MAPS, "Maps", tab=View.MAPS, child=View.MAP_PLAYERS),
    View.WEAPON_PLAYERS: ViewSpec(
        View.WEAPON_PLAYERS, "Top Players by Weapon", tab=View.WEAPONS, parent=View.WEAPONS
    ),
    View.MAP_PLAYERS: ViewSpec(
        View.MAP_PLAYERS, "Top Players by Map", tab=View.MAPS, parent=View.MAPS
    ),
    View.PLAYER: ViewSpec(
        View.PLAYER, "Player", tab=View.LADDER, parent=View.LADDER, paged=False
    ),
}

TABS: Tuple[View, ...] = tuple(spec.view for spec in REGISTRY.values() if spec.is_tab)


@dataclass(frozen=True)
class RenderRequest:
    """Where the panel should be after a transition."""

    view: View
    page: int = 0
    param: Optional[str] = None
    parent_page: Optional[int] = None
    generation: int = 0

    @property
    def spec(self) -> ViewSpec:
        return REGISTRY[self.view]

    @property
    def offset(self) -> int:
        return self.page * PAGE_SIZE

    @property
    def tab(self) -> View:
        return self.spec.tab

    @property
    def select_page(self) -> int:
        """Page of parent rows the toolbar select menu has to offer."""
        if self.spec.is_tab:
            return self.page
        return self.parent_page or 0

    def with_generation(self, generation: int) -> "RenderRequest":
        return replace(self, generation=generation)


HOME_REQUEST = RenderRequest(View.HOME)


def resolve(request: Request, values: Sequence[str] = ()) -> RenderRequest:
    """
    Transition function: decoded request (plus the chosen select values, if
    any) to the state the panel should render next.
    """
    spec = REGISTRY[request.view]

    if isinstance(request, TabSwitch):
        if not spec.is_tab:
            raise ProtocolError(f"{spec.view.value} is not a tab")
        return RenderRequest(spec.view, 0)

    if isinstance(request, PageTurn):
        if not spec.is_tab or not spec.paged:
            raise ProtocolError(f"{spec.view.value} has no plain pager")
        return RenderRequest(spec.view, request.page)

    if isinstance(request, DrillPageTurn):
        if spec.is_tab or not spec.paged:
            raise ProtocolError(f"{spec.view.value} has no drill-down pager")
        return RenderRequest(
            spec.view, request.page, param=request.param, parent_page=request.parent_page
        )

    if isinstance(request, DrillSelect):
        if spec.is_tab:
            raise ProtocolError(f"{spec.view.value} is not reachable from a select menu")
        if not values or not values[0]:
            raise ProtocolError(f"select for {spec.view.value} arrived without a value")
        return RenderRequest(spec.view, 0, param=values[0], parent_page=request.parent_page)

    raise ProtocolError(f"unsupported request {request!r}")


def pager_flags(page: int, total: int, page_size: int = PAGE_SIZE) -> Tuple[bool, bool]:
    """(has_previous, has_next) for a page of a list with `total` rows."""
    has_previous = page > 0
    has_next = page * page_size + page_size < total
    return has_previous, has_next


def total_pages(total: int, page_size: int = PAGE_SIZE) -> int:
    return max(1, -(-total // page_size))


def absolute_rank(page: int, index: int, page_size: int = PAGE_SIZE) -> int:
    return page * page_size + index + 1


def rank_label(rank: int) -> str:
    """Medal for the top three, `#<rank>.` for everybody else."""
    if 1 <= rank <= len(MEDALS):
        return MEDALS[rank - 1]
    return f"#{rank}."


def option_prefix(rank: int) -> str:
    if 1 <= rank <= len(MEDALS):
        return MEDALS[rank - 1]
    return f"#{rank}"


def row_rank(row: dict, page: int, index: int) -> int:
    rank = row.get("rank")
    if isinstance(rank, int) and rank > 0:
        return rank
    return absolute_rank(page, index)


def log_transition(request: RenderRequest) -> None:
    logger.debug(
        f"-> {request.view.value} page={request.page} param={request.param!r} "
        f"parent_page={request.parent_page} gen={request.generation}"
    )
