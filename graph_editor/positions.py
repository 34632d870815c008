"""
Fixed/dynamic position lock.

Dynamic: the renderer's simulation owns every position and no node is pinned.
Fixed: every node carries ``fixedPosition`` equal to its position.

A drag that ends while Dynamic gets a momentary pin: the renderer keeps the
node where it was dropped until the next simulation tick, then lets it go.
That pin only lives here and in the render payload, never in the store.
"""
import logging

from graph_editor.entities import LockState, Position

logger = logging.getLogger(__name__)


class PositionLockController:
    def __init__(self, store):
        self.store = store
        self._momentary = set()

    @property
    def state(self):
        return self.store.lock_state

    @property
    def locked(self):
        return self.state is LockState.FIXED

    @property
    def momentary_pins(self):
        return frozenset(self._momentary)

    def lock(self):
        self._momentary.clear()
        self.store.set_lock_state(LockState.FIXED)

    def unlock(self):
        self._momentary.clear()
        self.store.set_lock_state(LockState.DYNAMIC)

    def toggle(self):
        if self.locked:
            self.unlock()
        else:
            self.lock()
        return self.state

    def drag_end(self, node_id, position):
        """
        Write the dropped position back. Returns True when the node stays
        pinned (Fixed), False when the pin is only momentary (Dynamic).
        """
        self.store.set_position(node_id, Position.coerce(position))
        if self.locked:
            return True
        self._momentary.add(node_id)
        return False

    def tick(self, positions):
        """
        Apply one batch of simulation positions. Each entry is a full
        overwrite for that node; momentary drag pins are released. The batch
        is validated before any entry is written.
        """
        known = {
            node_id: Position.coerce(pos)
            for node_id, pos in positions.items()
            if node_id in self.store
        }
        for node_id, pos in known.items():
            self.store.set_position(node_id, pos)
        if self._momentary:
            logger.debug("Releasing momentary pins: %s", sorted(self._momentary))
            self._momentary.clear()
        return len(known)

    def forget(self, node_id):
        self._momentary.discard(node_id)
