"""
Timeline layout engine.

Turns a list of dated events plus a zoom factor (pixels per year) into card
positions. The date axis is x, columns (lanes) are stacked along y:

    x = origin_offset + years_since_epoch(date) * year_spacing
    y = column_offset + column * column_width

Cards without a manual column are placed first-fit into the lowest column
where they keep at least `min_gap` pixels from every other card. Everything
here is pure apart from `TimelineState`, which is the per-visitor view state
(zoom, category filter, session-only column overrides) kept in the Flask
session.
"""
import datetime
import logging
import math
from dataclasses import dataclass, field, fields

from .categories import ALL_EVENTS_ID, default_selection, filter_events, select_category
from .utils import parse_event_date

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25


@dataclass(frozen=True)
class LayoutConfig:
    epoch: datetime.date = datetime.date(2018, 1, 1)
    origin_offset: float = 100.0
    default_year_spacing: float = 200.0
    min_year_spacing: float = 20.0
    max_year_spacing: float = 1600.0
    zoom_step: float = 1.25
    column_offset: float = 210.0
    column_width: float = 220.0
    max_columns: int = 20
    card_extent: float = 80.0
    min_gap: float = 10.0
    drag_threshold: float = 0.5  # fraction of a column the pointer must travel

    @classmethod
    def from_mapping(cls, mapping, prefix="TIMELINE_"):
        """Build a config from `TIMELINE_*` keys (e.g. Flask's app.config)."""
        values = {}
        for f in fields(cls):
            key = prefix + f.name.upper()
            if key not in mapping:
                continue
            raw = mapping[key]
            if f.name == "epoch":
                values[f.name] = parse_event_date(raw)
            elif f.name == "max_columns":
                values[f.name] = int(raw)
            else:
                values[f.name] = float(raw)
        if "epoch" in values and values["epoch"] is None:
            raise ValueError(f"{prefix}EPOCH is not a valid date")
        config = cls(**values)
        if not 0 < config.min_year_spacing <= config.default_year_spacing <= config.max_year_spacing:
            raise ValueError("Year spacing bounds must satisfy 0 < min <= default <= max")
        if config.max_columns < 1:
            raise ValueError("max_columns must be at least 1")
        if config.zoom_step <= 1:
            raise ValueError("zoom_step must be greater than 1")
        return config


DEFAULT_CONFIG = LayoutConfig()


@dataclass(frozen=True)
class PositionedEvent:
    event: object
    x: float
    y: float
    column: int
    manual: bool = False

    @property
    def id(self):
        return self.event.id

    def to_dict(self):
        return {
            "id": self.event.id,
            "x": round(self.x, 3),
            "y": self.y,
            "column": self.column,
            "manual": self.manual,
        }


# ============================================================
# Positions
# ============================================================
def years_since_epoch(d_obj, config=DEFAULT_CONFIG):
    return (d_obj - config.epoch).days / DAYS_PER_YEAR


def x_position(d_obj, year_spacing, config=DEFAULT_CONFIG):
    if year_spacing <= 0:
        raise ValueError("year_spacing must be positive")
    return config.origin_offset + years_since_epoch(d_obj, config) * year_spacing


def y_position(column, config=DEFAULT_CONFIG):
    return config.column_offset + column * config.column_width


def clamp_column(column, config=DEFAULT_CONFIG):
    return max(0, min(int(column), config.max_columns - 1))


def column_for_offset(top, config=DEFAULT_CONFIG):
    """Column whose lane is nearest to a card top edge at `top` pixels."""
    relative = (top - config.column_offset) / config.column_width
    # round half up, the way a browser's Math.round does
    return clamp_column(math.floor(relative + 0.5), config)


def year_ticks(events, year_spacing, config=DEFAULT_CONFIG):
    """(year, x) pairs for every January 1st from the epoch to the last event."""
    last = config.epoch
    for event in events:
        d_obj = parse_event_date(event.date)
        if d_obj is not None and d_obj > last:
            last = d_obj
    return [
        (year, x_position(datetime.date(year, 1, 1), year_spacing, config))
        for year in range(config.epoch.year, last.year + 2)
    ]


# ============================================================
# Columns
# ============================================================
def _is_free(spans, start, end, gap):
    for s, e in spans:
        if not (end + gap <= s or e + gap <= start):
            return False
    return True


def layout_events(events, year_spacing, overrides=None, config=DEFAULT_CONFIG):
    """
    Position every event with a usable date.

    Args:
        events: records with `id`, `date` and `column` attributes
        year_spacing: pixels per year, must be positive
        overrides: optional {event_id: column} taking priority over stored columns
        config: LayoutConfig

    Returns:
        List of PositionedEvent in date order. Events whose date is missing
        or unparsable are left out.
    """
    overrides = overrides or {}
    dated = []
    for event in events:
        d_obj = parse_event_date(event.date)
        if d_obj is None:
            logger.debug("Skipping event %s with unusable date %r", event.id, event.date)
            continue
        dated.append((d_obj, event))
    dated.sort(key=lambda pair: (pair[0], pair[1].id))

    half = config.card_extent / 2
    lanes = [[] for _ in range(config.max_columns)]
    placed = {}

    # Manual columns first so automatic cards flow around them
    for d_obj, event in dated:
        column = overrides.get(event.id, event.column)
        if column is None:
            continue
        column = clamp_column(column, config)
        x = x_position(d_obj, year_spacing, config)
        lanes[column].append((x - half, x + half))
        placed[event.id] = (x, column, True)

    for d_obj, event in dated:
        if event.id in placed:
            continue
        x = x_position(d_obj, year_spacing, config)
        start, end = x - half, x + half
        column = None
        for c, spans in enumerate(lanes):
            if _is_free(spans, start, end, config.min_gap):
                column = c
                break
        if column is None:
            # Every lane is busy here; stack onto the one that frees up first
            column = min(range(config.max_columns), key=lambda c: max(e for _, e in lanes[c]))
        lanes[column].append((start, end))
        placed[event.id] = (x, column, False)

    result = []
    for _, event in dated:
        x, column, manual = placed[event.id]
        result.append(PositionedEvent(event=event, x=x, y=y_position(column, config), column=column, manual=manual))
    return result


# ============================================================
# Zoom
# ============================================================
def clamp_spacing(year_spacing, config=DEFAULT_CONFIG):
    return max(config.min_year_spacing, min(config.max_year_spacing, year_spacing))


def zoom_in(year_spacing, config=DEFAULT_CONFIG):
    return clamp_spacing(year_spacing * config.zoom_step, config)


def zoom_out(year_spacing, config=DEFAULT_CONFIG):
    return clamp_spacing(year_spacing / config.zoom_step, config)


# ============================================================
# Drag
# ============================================================
class DragSession:
    """
    Pointer tracking for moving one card to another column.

    begin() on press, move() while the pointer moves, release() on release.
    release() returns the column to commit, or None when the drag reverts
    (travel under the threshold, or dropped back onto its own column).
    """

    def __init__(self, event_id, column, config=DEFAULT_CONFIG):
        self.event_id = event_id
        self.start_column = clamp_column(column, config)
        self.preview_column = self.start_column
        self.config = config
        self.active = False
        self.start_y = 0.0
        self.grab_offset = 0.0

    def begin(self, pointer_y, card_top=None):
        if card_top is None:
            card_top = y_position(self.start_column, self.config)
        self.start_y = pointer_y
        self.grab_offset = pointer_y - card_top
        self.preview_column = self.start_column
        self.active = True

    def move(self, pointer_y):
        if self.active:
            self.preview_column = column_for_offset(pointer_y - self.grab_offset, self.config)
        return self.preview_column

    def release(self, pointer_y):
        if not self.active:
            return None
        self.active = False
        travel = abs(pointer_y - self.start_y)
        target = column_for_offset(pointer_y - self.grab_offset, self.config)
        if travel < self.config.drag_threshold * self.config.column_width or target == self.start_column:
            self.preview_column = self.start_column
            return None
        self.preview_column = target
        return target


# ============================================================
# View state
# ============================================================
@dataclass
class TimelineState:
    year_spacing: float
    selected_categories: list = field(default_factory=default_selection)
    overrides: dict = field(default_factory=dict)
    dragging_enabled: bool = False
    show_event_dates: bool = True
    config: LayoutConfig = field(default=DEFAULT_CONFIG, compare=False, repr=False)

    @classmethod
    def default(cls, config=DEFAULT_CONFIG):
        return cls(year_spacing=config.default_year_spacing, config=config)

    def zoom_in(self):
        self.year_spacing = zoom_in(self.year_spacing, self.config)
        return self.year_spacing

    def zoom_out(self):
        self.year_spacing = zoom_out(self.year_spacing, self.config)
        return self.year_spacing

    def select_category(self, category_id):
        self.selected_categories = select_category(self.selected_categories, category_id)
        return self.selected_categories

    def set_override(self, event_id, column):
        self.overrides[event_id] = clamp_column(column, self.config)

    def reset(self):
        self.year_spacing = self.config.default_year_spacing
        self.selected_categories = default_selection()
        self.overrides = {}

    def visible(self, events):
        return filter_events(events, self.selected_categories)

    def layout(self, events):
        return layout_events(self.visible(events), self.year_spacing, self.overrides, self.config)

    def to_session(self):
        return {
            "year_spacing": self.year_spacing,
            "selected_categories": list(self.selected_categories),
            "overrides": dict(self.overrides),
            "dragging_enabled": self.dragging_enabled,
            "show_event_dates": self.show_event_dates,
        }

    @classmethod
    def from_session(cls, data, config=DEFAULT_CONFIG):
        """Rebuild state from session data, ignoring anything malformed."""
        state = cls.default(config)
        if not isinstance(data, dict):
            return state
        try:
            state.year_spacing = clamp_spacing(float(data.get("year_spacing", state.year_spacing)), config)
        except (TypeError, ValueError):
            pass
        selected = data.get("selected_categories")
        if isinstance(selected, list) and selected and all(isinstance(c, str) for c in selected):
            state.selected_categories = [ALL_EVENTS_ID] if ALL_EVENTS_ID in selected else list(selected)
        overrides = data.get("overrides")
        if isinstance(overrides, dict):
            for event_id, column in overrides.items():
                if isinstance(column, int) and not isinstance(column, bool):
                    state.overrides[str(event_id)] = clamp_column(column, config)
        state.dragging_enabled = bool(data.get("dragging_enabled", False))
        state.show_event_dates = bool(data.get("show_event_dates", True))
        return state
