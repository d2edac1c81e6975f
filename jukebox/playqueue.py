"""Play queue — traversal order over playlist indices, shuffle with history."""
import random
from typing import Optional


class PlayQueue:
    """A fixed permutation of playlist indices plus a cursor.

    The permutation only changes through build(); advance()/retreat() walk the
    same order every time, wrapping at both ends. A fresh queue sits on its
    last slot so the first advance() lands on slot 0.
    """

    def __init__(self, order: list[int], shuffle: bool = False):
        self._order = list(order)
        self._shuffle = shuffle
        self._pos = len(self._order) - 1 if self._order else 0

    @classmethod
    def build(cls, length: int, shuffle: bool = False, rng: Optional[random.Random] = None) -> "PlayQueue":
        order = list(range(max(0, length)))
        if shuffle and len(order) > 1:
            (rng or random).shuffle(order)
        return cls(order, shuffle)

    def __len__(self) -> int:
        return len(self._order)

    @property
    def shuffle(self) -> bool:
        return self._shuffle

    @property
    def order(self) -> list[int]:
        return list(self._order)

    @property
    def position(self) -> int:
        return self._pos

    def current(self) -> Optional[int]:
        if not self._order:
            return None
        return self._order[self._pos]

    def advance(self) -> Optional[int]:
        if not self._order:
            return None
        self._pos = (self._pos + 1) % len(self._order)
        return self._order[self._pos]

    def retreat(self) -> Optional[int]:
        if not self._order:
            return None
        self._pos = (self._pos - 1) % len(self._order)
        return self._order[self._pos]

    def jump_to(self, index: int) -> Optional[int]:
        """Move the cursor onto the slot holding playlist index `index`."""
        try:
            self._pos = self._order.index(index)
        except ValueError:
            return None
        return index
