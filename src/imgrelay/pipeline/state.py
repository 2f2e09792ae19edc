"""Item lifecycle state machine.

Enforces that an item only ever moves forward through the pipeline and
that terminal states are final.
"""

from __future__ import annotations

from imgrelay.errors import StateError
from imgrelay.models import ItemStatus


class ItemStateMachine:
    """Finite state machine guarding a single item's status.

    Valid transitions::

        PENDING     -> PROCESSING
        PROCESSING  -> UPLOADING | ERROR
        UPLOADING   -> COMPLETED | ERROR
        COMPLETED   -> (terminal)
        ERROR       -> (terminal)

    Parameters
    ----------
    item_id:
        The id of the item being tracked.
    state:
        Starting state.  Restored items may start in a terminal state.
    """

    VALID_TRANSITIONS: dict[ItemStatus, set[ItemStatus]] = {
        ItemStatus.PENDING: {ItemStatus.PROCESSING},
        ItemStatus.PROCESSING: {ItemStatus.UPLOADING, ItemStatus.ERROR},
        ItemStatus.UPLOADING: {ItemStatus.COMPLETED, ItemStatus.ERROR},
        ItemStatus.COMPLETED: set(),
        ItemStatus.ERROR: set(),
    }

    def __init__(self, item_id: str, state: ItemStatus = ItemStatus.PENDING) -> None:
        self.item_id: str = item_id
        self.state: ItemStatus = state

    def can_transition(self, new_state: ItemStatus) -> bool:
        return new_state in self.VALID_TRANSITIONS.get(self.state, set())

    def transition(self, new_state: ItemStatus) -> ItemStatus:
        """Move to *new_state* and return the previous state.

        Raises
        ------
        StateError
            If the transition from the current state is not allowed.
        """
        allowed = self.VALID_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise StateError(
                message=(
                    f"Invalid state transition: {self.state.value} -> {new_state.value} "
                    f"for item {self.item_id}"
                ),
                context={
                    "item_id": self.item_id,
                    "current_state": self.state.value,
                    "requested_state": new_state.value,
                    "allowed": sorted(s.value for s in allowed),
                },
            )
        previous = self.state
        self.state = new_state
        return previous
