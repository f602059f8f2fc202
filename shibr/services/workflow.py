"""Linear status machines for rentals and clearances."""
import enum
from typing import Iterable, Optional

from shibr.core.exceptions import InvalidTransitionError


class LinearWorkflow:
    """
    A fixed, ordered sequence of statuses.

    Every action moves exactly one step forward. Side exits (for example a
    rejection) are listed per target status with the statuses they may leave
    from.
    """

    def __init__(
        self,
        entity: str,
        order: Iterable[enum.Enum],
        exits: Optional[dict] = None,
    ):
        self.entity = entity
        self.order = list(order)
        self.exits = exits or {}

    def next_status(self, current: enum.Enum) -> Optional[enum.Enum]:
        if current not in self.order:
            return None
        index = self.order.index(current)
        if index + 1 >= len(self.order):
            return None
        return self.order[index + 1]

    def can_move(self, current: enum.Enum, target: enum.Enum) -> bool:
        if target in self.exits:
            return current in self.exits[target]
        return self.next_status(current) == target

    def check(self, current: enum.Enum, target: enum.Enum) -> enum.Enum:
        """Return target if the move is allowed, otherwise raise."""
        if not self.can_move(current, target):
            raise InvalidTransitionError(self.entity, _value(current), _value(target))
        return target

    def is_terminal(self, status: enum.Enum) -> bool:
        if status in self.exits:
            return True
        return self.next_status(status) is None


def _value(status) -> str:
    return status.value if isinstance(status, enum.Enum) else str(status)
