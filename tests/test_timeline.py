"""Layout, zoom, drag and view-state behaviour of the timeline engine."""
import datetime

import pytest

from tnt_history.store import EventRecord
from tnt_history.timeline import (
    DEFAULT_CONFIG,
    DragSession,
    LayoutConfig,
    TimelineState,
    column_for_offset,
    layout_events,
    x_position,
    y_position,
    year_ticks,
    zoom_in,
    zoom_out,
)


def rec(event_id, date, column=None, category=None):
    return EventRecord(id=event_id, title=event_id, date=date, column=column, category=category)


# ============================================================
# Positions
# ============================================================
def test_x_position_worked_example():
    config = LayoutConfig(epoch=datetime.date(2018, 1, 1), origin_offset=100.0)
    x = x_position(datetime.date(2020, 6, 1), 20, config)
    # 882 days / 365.25 = 2.41 years, * 20 px
    assert x == pytest.approx(100.0 + 48.2, abs=0.2)


def test_x_position_is_strictly_monotonic_for_every_spacing():
    dates = [datetime.date(2016, 12, 31), datetime.date(2018, 1, 1), datetime.date(2018, 1, 2),
             datetime.date(2020, 2, 29), datetime.date(2024, 8, 9)]
    spacing = DEFAULT_CONFIG.min_year_spacing
    while spacing <= DEFAULT_CONFIG.max_year_spacing:
        xs = [x_position(d, spacing) for d in dates]
        assert all(a < b for a, b in zip(xs, xs[1:])), spacing
        spacing *= 1.7


def test_x_position_rejects_non_positive_spacing():
    with pytest.raises(ValueError):
        x_position(datetime.date(2020, 1, 1), 0)


def test_layout_is_deterministic():
    events = [rec("b", "2019-05-01"), rec("a", "2019-05-01"), rec("c", "2022-01-01")]
    first = [p.to_dict() for p in layout_events(events, 150)]
    second = [p.to_dict() for p in layout_events(list(reversed(events)), 150)]
    assert first == second


def test_zoom_never_reorders_events():
    events = [rec(str(i), f"20{18 + i % 6}-0{1 + i % 9}-1{i % 9}") for i in range(12)]
    order_default = [p.id for p in layout_events(events, 200)]
    order_zoomed = [p.id for p in layout_events(events, 35)]
    assert order_default == order_zoomed


# ============================================================
# Columns
# ============================================================
def test_empty_event_list_gives_empty_layout():
    assert layout_events([], 200) == []


def test_malformed_and_missing_dates_are_skipped():
    events = [rec("ok", "2019-01-01"), rec("bad", "not a date"), rec("none", None), rec("blank", "  ")]
    positioned = layout_events(events, 200)
    assert [p.id for p in positioned] == ["ok"]


def test_close_events_are_spread_across_columns():
    events = [rec("a", "2019-03-01"), rec("b", "2019-03-02"), rec("c", "2019-03-03")]
    columns = {p.id: p.column for p in layout_events(events, 200)}
    assert columns == {"a": 0, "b": 1, "c": 2}


def test_distant_events_share_column_zero():
    events = [rec("a", "2018-01-01"), rec("b", "2019-01-01"), rec("c", "2020-01-01")]
    assert {p.column for p in layout_events(events, 200)} == {0}


def test_automatic_cards_keep_minimum_gap_in_each_column():
    events = [rec(f"e{i}", (datetime.date(2019, 1, 1) + datetime.timedelta(days=11 * i)).isoformat())
              for i in range(40)]
    positioned = layout_events(events, 300)
    by_column = {}
    for p in positioned:
        by_column.setdefault(p.column, []).append(p.x)
    limit = DEFAULT_CONFIG.card_extent + DEFAULT_CONFIG.min_gap
    for xs in by_column.values():
        xs.sort()
        assert all(b - a >= limit - 1e-9 for a, b in zip(xs, xs[1:]))


def test_y_follows_column():
    positioned = layout_events([rec("a", "2019-03-01"), rec("b", "2019-03-02")], 200)
    for p in positioned:
        assert p.y == y_position(p.column)


def test_stored_column_is_honoured_and_clamped():
    events = [rec("a", "2019-03-01", column=3), rec("b", "2019-06-01", column=99)]
    columns = {p.id: (p.column, p.manual) for p in layout_events(events, 200)}
    assert columns["a"] == (3, True)
    assert columns["b"] == (DEFAULT_CONFIG.max_columns - 1, True)


def test_override_beats_stored_column():
    events = [rec("a", "2019-03-01", column=3)]
    positioned = layout_events(events, 200, overrides={"a": 5})
    assert positioned[0].column == 5


def test_automatic_cards_avoid_manual_ones():
    events = [rec("pinned", "2019-03-01", column=0), rec("auto", "2019-03-02")]
    columns = {p.id: p.column for p in layout_events(events, 200)}
    assert columns == {"pinned": 0, "auto": 1}


def test_full_lanes_fall_back_to_earliest_free_column():
    config = LayoutConfig(max_columns=2)
    events = [rec("a", "2019-03-01"), rec("b", "2019-03-02"), rec("c", "2019-03-03")]
    columns = [p.column for p in layout_events(events, 200, config=config)]
    assert columns[:2] == [0, 1]
    assert columns[2] in (0, 1)


def test_year_ticks_cover_epoch_to_last_event():
    ticks = year_ticks([rec("a", "2020-06-01")], 100)
    assert [year for year, _ in ticks] == [2018, 2019, 2020, 2021]
    assert ticks[0][1] == DEFAULT_CONFIG.origin_offset


# ============================================================
# Zoom
# ============================================================
def test_zoom_in_then_out_restores_spacing():
    start = DEFAULT_CONFIG.default_year_spacing
    assert zoom_out(zoom_in(start)) == pytest.approx(start)
    assert zoom_in(zoom_out(start)) == pytest.approx(start)


def test_zoom_is_clamped_and_idempotent_at_bounds():
    top = DEFAULT_CONFIG.max_year_spacing
    bottom = DEFAULT_CONFIG.min_year_spacing
    assert zoom_in(top) == top
    assert zoom_in(zoom_in(top)) == top
    assert zoom_out(bottom) == bottom

    spacing = DEFAULT_CONFIG.default_year_spacing
    for _ in range(50):
        spacing = zoom_in(spacing)
    assert spacing == top
    assert zoom_out(spacing) == pytest.approx(top / DEFAULT_CONFIG.zoom_step)


# ============================================================
# Drag
# ============================================================
def test_column_for_offset_rounds_half_up_and_clamps():
    c = DEFAULT_CONFIG
    assert column_for_offset(c.column_offset) == 0
    assert column_for_offset(c.column_offset + c.column_width * 1.5) == 2
    assert column_for_offset(-5000) == 0
    assert column_for_offset(c.column_offset + c.column_width * 500) == c.max_columns - 1


def test_drag_commits_new_column():
    drag = DragSession("a", 0)
    top = y_position(0)
    drag.begin(top + 10)
    assert drag.move(top + 10 + DEFAULT_CONFIG.column_width * 2) == 2
    assert drag.release(top + 10 + DEFAULT_CONFIG.column_width * 2) == 2


def test_drag_under_threshold_reverts():
    drag = DragSession("a", 1)
    top = y_position(1)
    drag.begin(top + 5)
    drag.move(top + 60)
    assert drag.release(top + 60) is None
    assert drag.preview_column == 1


def test_drag_dropped_on_own_column_reverts():
    drag = DragSession("a", 2)
    top = y_position(2)
    drag.begin(top)
    drag.move(top + 400)
    assert drag.release(top + 30) is None


def test_drag_is_clamped_to_last_column():
    drag = DragSession("a", 0)
    drag.begin(y_position(0))
    assert drag.release(y_position(0) + 100000) == DEFAULT_CONFIG.max_columns - 1


def test_release_without_begin_does_nothing():
    assert DragSession("a", 0).release(9999) is None


# ============================================================
# View state
# ============================================================
def test_reset_restores_defaults_and_clears_overrides():
    state = TimelineState.default()
    state.zoom_in()
    state.select_category("update")
    state.set_override("a", 4)

    state.reset()

    assert state == TimelineState.default()
    assert state.overrides == {}


def test_state_visible_and_layout_follow_filter():
    events = [rec("a", "2019-01-01", category="update"), rec("b", "2019-02-01", category="tournament")]
    state = TimelineState.default()
    state.select_category("tournament")
    assert [e.id for e in state.visible(events)] == ["b"]
    assert [p.id for p in state.layout(events)] == ["b"]


def test_state_session_round_trip_and_sanitizing():
    state = TimelineState.default()
    state.zoom_out()
    state.select_category("update")
    state.set_override("a", 2)
    state.dragging_enabled = True

    restored = TimelineState.from_session(state.to_session())
    assert restored == state

    messy = TimelineState.from_session({
        "year_spacing": "huge",
        "selected_categories": ["all", "update"],
        "overrides": {"a": "3", "b": 500, "c": True},
    })
    assert messy.year_spacing == DEFAULT_CONFIG.default_year_spacing
    assert messy.selected_categories == ["all"]
    assert messy.overrides == {"b": DEFAULT_CONFIG.max_columns - 1}


def test_layout_config_from_mapping():
    config = LayoutConfig.from_mapping({
        "TIMELINE_EPOCH": "2015-01-01",
        "TIMELINE_MAX_COLUMNS": "8",
        "TIMELINE_ZOOM_STEP": 2,
        "UNRELATED": 1,
    })
    assert config.epoch == datetime.date(2015, 1, 1)
    assert config.max_columns == 8
    assert config.zoom_step == 2.0
    assert config.column_width == DEFAULT_CONFIG.column_width

    with pytest.raises(ValueError):
        LayoutConfig.from_mapping({"TIMELINE_MIN_YEAR_SPACING": 500, "TIMELINE_DEFAULT_YEAR_SPACING": 100})
