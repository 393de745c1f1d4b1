"""Per-session bridge between map interactions and the tool layer."""

from typing import Any

from pydantic import BaseModel

from silvaplan.models.map import BestLocation, MapContext

_SLOTS = frozenset(MapContext.model_fields)


class MapContextBridge:
    """Holds where the user is looking or pointing.

    Mutated by UI interaction callbacks, read by tools that need an implicit
    location. One bridge exists per session.
    """

    def __init__(self) -> None:
        self._context = MapContext()

    def set_context(self, **updates: Any) -> None:
        """Shallow-merge the given slots; an explicit None clears a slot.

        Raises:
            KeyError: If an unknown slot name is passed.
        """
        values = self._context.model_dump()
        for slot, value in updates.items():
            if slot not in _SLOTS:
                raise KeyError(f"Unknown map context slot: {slot}")
            if isinstance(value, BaseModel):
                value = value.model_dump()
            values[slot] = value
        self._context = MapContext.model_validate(values)

    def get_context(self) -> MapContext:
        """Return a copy of the current snapshot."""
        return self._context.model_copy(deep=True)

    def get_best_location(self) -> BestLocation | None:
        """Best available location: picked pin, then GPS, then viewport center."""
        context = self._context
        if context.picked_location:
            return BestLocation(lat=context.picked_location.lat, lng=context.picked_location.lng, source="picked")
        if context.user_gps:
            return BestLocation(lat=context.user_gps.lat, lng=context.user_gps.lng, source="gps")
        if context.current_view:
            return BestLocation(lat=context.current_view.lat, lng=context.current_view.lng, source="view")
        return None

    def clear_picked_location(self) -> None:
        """Forget the picked pin so it is not silently reused by the next action."""
        self._context = self._context.model_copy(update={"picked_location": None})
