# codec.py

"""
Custom-id tokens for the dashboard controls.

Every button and select menu on the two surfaces carries a colon-delimited
token. The number of fields picks the grammar:

    ui:<view>                                      tab switch
    ui:<view>:prev|next:<page>                     pager, no drill-down
    ui:<view>:select:<parentPage>                  drill-down select menu
    ui:<view>:prev|next:<page>:<label>:<parentPage> pager inside a drill-down

The drill-down label is percent-encoded because it is free text.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
from urllib.parse import quote, unquote

from loguru import logger

from tools import ProtocolError

PROTOCOL_MARKER = "ui"
SEPARATOR = ":"
MAX_TOKEN_LENGTH = 100  # Discord's custom_id limit
PAGE_FIELD_DIGITS = 6  # widest page or parent page a pager token is sized for

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class View(str, Enum):
    HOME = "home"
    LADDER = "ladder"
    WEAPONS = "weapons"
    MAPS = "maps"
    WEAPON_PLAYERS = "weaponPlayers"
    MAP_PLAYERS = "mapsPlayers"
    PLAYER = "player"


class Direction(str, Enum):
    PREV = "prev"
    NEXT = "next"


SELECT_ACTION = "select"


@dataclass(frozen=True)
class DrillDown:
    """The parent filter a child view was opened with, and the parent's page."""

    label: str
    parent_page: int = 0


# --- Request variants ---
# A decoded token is one of these. `page` is always the page to show next.

@dataclass(frozen=True)
class TabSwitch:
    view: View
    page: int = 0


@dataclass(frozen=True)
class PageTurn:
    view: View
    page: int


@dataclass(frozen=True)
class DrillPageTurn:
    view: View
    page: int
    param: str
    parent_page: int


@dataclass(frozen=True)
class DrillSelect:
    view: View
    parent_page: int
    page: int = 0


Request = Union[TabSwitch, PageTurn, DrillPageTurn, DrillSelect]


def parse_page(raw: str) -> int:
    """
    Parses a numeric field from its leading digits, so "3abc" is 3 and "1.5"
    is 1. Garbage becomes 0 and negatives clamp to 0.
    """
    if not isinstance(raw, str):
        return 0
    match = _LEADING_INT.match(raw)
    if match is None:
        return 0
    return max(int(match.group(1)), 0)


def step(page: int, direction: Direction) -> int:
    if direction is Direction.NEXT:
        return page + 1
    return max(page - 1, 0)


def _trim_to_budget(label: str, budget: int) -> str:
    # Drop whole characters until the escaped text fits, so an escape is never split.
    text = label
    while len(quote(text, safe="")) > budget and text:
        text = text[:-1]
    return text


def _encode_label(label: str, prefix_length: int, suffix_length: int) -> str:
    text = _trim_to_budget(label, MAX_TOKEN_LENGTH - prefix_length - suffix_length)
    if text != label:
        logger.warning(
            f"Drill-down filter {label!r} trimmed to {text!r} to fit the custom id"
        )
    return quote(text, safe="")


def fit_label(view: View, label: str) -> str:
    """
    Longest prefix of `label` that any pager token of `view` can carry whole.

    Select option values go through this so the filter chosen in the menu is
    exactly the one the pager buttons repeat on every later page.
    """
    page = "9" * PAGE_FIELD_DIGITS
    head = SEPARATOR.join((PROTOCOL_MARKER, View(view).value, Direction.NEXT.value, page))
    return _trim_to_budget(label, MAX_TOKEN_LENGTH - len(head) - 2 - len(page))


def encode(
    view: View,
    page: int = 0,
    direction: Optional[Direction] = None,
    drilldown: Optional[DrillDown] = None,
) -> str:
    """
    Builds the token that a control should carry.

    With a direction this is a pager button sitting on `page`. Without one it
    is a token that lands on `page`: a plain tab switch for page 0, otherwise a
    "next" from the page before.
    """
    view = View(view)
    page = max(int(page), 0)
    if direction is None:
        if page == 0 and drilldown is None:
            return SEPARATOR.join((PROTOCOL_MARKER, view.value))
        if page == 0:
            # A drill-down token has no tab form; "prev" from 0 stays on 0.
            direction = Direction.PREV
        else:
            direction, page = Direction.NEXT, page - 1
    direction = Direction(direction)

    head = SEPARATOR.join((PROTOCOL_MARKER, view.value, direction.value, str(page)))
    if drilldown is None:
        return head
    tail = str(max(drilldown.parent_page, 0))
    label = _encode_label(drilldown.label, len(head) + 1, len(tail) + 1)
    return SEPARATOR.join((head, label, tail))


def encode_select(view: View, parent_page: int) -> str:
    return SEPARATOR.join(
        (PROTOCOL_MARKER, View(view).value, SELECT_ACTION, str(max(parent_page, 0)))
    )


def is_panel_token(custom_id: Optional[str]) -> bool:
    return bool(custom_id) and custom_id.split(SEPARATOR, 1)[0] == PROTOCOL_MARKER


def _view(raw: str) -> View:
    try:
        return View(raw)
    except ValueError:
        raise ProtocolError(f"unknown view {raw!r}") from None


def decode(token: str) -> Request:
    """
    Turns a token back into a request. Raises ProtocolError when the token is
    not ours or does not follow the grammar; numeric fields never raise.
    """
    if not isinstance(token, str):
        raise ProtocolError(f"token must be a string, got {type(token).__name__}")
    fields = token.split(SEPARATOR)
    if fields[0] != PROTOCOL_MARKER:
        raise ProtocolError(f"bad protocol marker in {token!r}")

    if len(fields) == 2:
        return TabSwitch(_view(fields[1]))

    if len(fields) == 4:
        view, action, current = _view(fields[1]), fields[2], parse_page(fields[3])
        if action == SELECT_ACTION:
            return DrillSelect(view, parent_page=current)
        try:
            direction = Direction(action)
        except ValueError:
            raise ProtocolError(f"unknown action {action!r} in {token!r}") from None
        return PageTurn(view, step(current, direction))

    if len(fields) == 6:
        view, action = _view(fields[1]), fields[2]
        try:
            direction = Direction(action)
        except ValueError:
            raise ProtocolError(f"unknown pager action {action!r} in {token!r}") from None
        return DrillPageTurn(
            view,
            page=step(parse_page(fields[3]), direction),
            param=unquote(fields[4]),
            parent_page=parse_page(fields[5]),
        )

    raise ProtocolError(f"token {token!r} has {len(fields)} fields")
