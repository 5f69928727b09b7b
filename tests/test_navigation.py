"""Tests for the view registry and the transition function."""

import pytest

from codec import DrillPageTurn, DrillSelect, PageTurn, TabSwitch, View, decode
from navigation import (
    HOME_REQUEST,
    REGISTRY,
    TABS,
    RenderRequest,
    absolute_rank,
    option_prefix,
    pager_flags,
    rank_label,
    resolve,
    row_rank,
    total_pages,
)
from tools import ProtocolError


def test_tabs_in_toolbar_order():
    assert TABS == (View.HOME, View.LADDER, View.WEAPONS, View.MAPS)


def test_children_light_parent_tab():
    assert REGISTRY[View.WEAPON_PLAYERS].tab is View.WEAPONS
    assert REGISTRY[View.MAP_PLAYERS].tab is View.MAPS
    assert REGISTRY[View.PLAYER].tab is View.LADDER


def test_every_list_has_a_child_that_points_back():
    for view in (View.LADDER, View.WEAPONS, View.MAPS):
        child = REGISTRY[view].child
        assert REGISTRY[child].parent is view


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------

def test_tab_switch_starts_on_first_page():
    assert resolve(TabSwitch(View.LADDER)) == RenderRequest(View.LADDER, 0)


def test_page_turn():
    assert resolve(decode("ui:ladder:next:1")) == RenderRequest(View.LADDER, 2)


def test_select_opens_child_on_first_page_with_parent_page():
    request = resolve(decode("ui:weaponPlayers:select:1"), ["Rifle"])
    assert request == RenderRequest(View.WEAPON_PLAYERS, 0, param="Rifle", parent_page=1)
    assert request.tab is View.WEAPONS
    assert request.select_page == 1


def test_player_select():
    request = resolve(DrillSelect(View.PLAYER, parent_page=2), ["117"])
    assert request == RenderRequest(View.PLAYER, 0, param="117", parent_page=2)


def test_drill_page_turn_keeps_context():
    request = resolve(decode("ui:weaponPlayers:prev:0:Rifle:1"))
    assert (request.page, request.param, request.parent_page) == (0, "Rifle", 1)


@pytest.mark.parametrize(
    "request_, values",
    [
        (TabSwitch(View.WEAPON_PLAYERS), ()),
        (PageTurn(View.PLAYER, 1), ()),
        (PageTurn(View.HOME, 1), ()),
        (PageTurn(View.MAP_PLAYERS, 1), ()),
        (DrillPageTurn(View.LADDER, 1, "x", 0), ()),
        (DrillPageTurn(View.PLAYER, 1, "117", 0), ()),
        (DrillSelect(View.LADDER, 0), ["x"]),
        (DrillSelect(View.PLAYER, 0), ()),
        (DrillSelect(View.PLAYER, 0), [""]),
    ],
)
def test_invalid_transitions_are_rejected(request_, values):
    with pytest.raises(ProtocolError):
        resolve(request_, values)


def test_home_request():
    assert HOME_REQUEST.view is View.HOME
    assert HOME_REQUEST.with_generation(4).generation == 4
    assert HOME_REQUEST.generation == 0


# ---------------------------------------------------------------------------
# Paging and ranks
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "page, total, expected",
    [
        (0, 23, (False, True)),
        (1, 23, (True, True)),
        (2, 23, (True, False)),
        (0, 10, (False, False)),
        (0, 0, (False, False)),
        (5, 3, (True, False)),
    ],
)
def test_pager_flags(page, total, expected):
    assert pager_flags(page, total) == expected


def test_total_pages_never_zero():
    assert total_pages(0) == 1
    assert total_pages(10) == 1
    assert total_pages(23) == 3


def test_ranks():
    assert absolute_rank(0, 0) == 1
    assert absolute_rank(2, 3) == 24
    assert [rank_label(r) for r in (1, 2, 3, 4)] == ["🥇", "🥈", "🥉", "#4."]
    assert option_prefix(12) == "#12"
    assert row_rank({"rank": 7}, 3, 0) == 7
    assert row_rank({}, 1, 2) == 13


def test_rank_does_not_depend_on_total():
    assert absolute_rank(2, 4) == 25
    assert [rank_label(absolute_rank(0, i)) for i in range(5)][3:] == ["#4.", "#5."]
