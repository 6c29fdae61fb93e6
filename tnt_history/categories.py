"""
Category registry and the timeline category filter.

The filter is a list of selected category ids. The "all" sentinel means no
filtering and never appears together with a specific id.
"""
from dataclasses import dataclass

from .models import Category

ALL_EVENTS_ID = "all"
NEUTRAL_COLOR = "888888"


@dataclass(frozen=True)
class CategoryOption:
    id: str
    name: str
    color: str


ALL_EVENTS_OPTION = CategoryOption(id=ALL_EVENTS_ID, name="All Events", color="FFFFFF")


def default_selection():
    return [ALL_EVENTS_ID]


def select_category(selection, category_id):
    """
    Apply one click in the category dropdown.

    - picking "all" resets the selection to just "all"
    - picking a category while "all" is active selects only that category
    - otherwise the category is toggled; an empty selection falls back to "all"
    """
    if category_id == ALL_EVENTS_ID:
        return default_selection()

    current = list(selection or default_selection())
    if ALL_EVENTS_ID in current:
        return [category_id]

    if category_id in current:
        current = [c for c in current if c != category_id]
    else:
        current.append(category_id)

    return current or default_selection()


def filter_events(events, selection):
    if not selection or ALL_EVENTS_ID in selection:
        return list(events)
    wanted = set(selection)
    return [e for e in events if e.category in wanted]


class CategoryRegistry:
    """Categories by id, loaded once per request from the database."""

    def __init__(self, categories):
        self._by_id = {}
        for c in categories:
            self._by_id[c.id] = CategoryOption(id=c.id, name=c.name, color=c.color)

    @classmethod
    def load(cls):
        return cls(Category.query.order_by(Category.name).all())

    def get(self, category_id):
        return self._by_id.get(category_id)

    def __contains__(self, category_id):
        return category_id in self._by_id

    def __len__(self):
        return len(self._by_id)

    def options(self):
        """Dropdown entries, sentinel first."""
        return [ALL_EVENTS_OPTION] + list(self._by_id.values())

    def event_style(self, category_id):
        """Inline CSS for an event card of the given category."""
        option = self.get(category_id)
        color = option.color if option else NEUTRAL_COLOR
        return f"border-color: #{color}; background-color: #{color}33;"
