from typing import Iterable, List, Optional, Sequence

from sti_manager.editor.errors import InvalidPermutationError
from sti_manager.editor.sprite_collection import is_permutation


class ReorderStagingEngine:
    """Holds a tentative frame order that is previewed before it is committed.

    ``staged_order[i]`` is the committed index of the frame displayed at
    position ``i``. Nothing here touches the collection; ``commit`` hands the
    order to the caller, which applies it.
    """

    def __init__(self, frame_count: int):
        self.frame_count = 0
        self._order: List[int] = []
        self.reset(frame_count)

    @property
    def staged_order(self) -> List[int]:
        return list(self._order)

    @property
    def dirty(self) -> bool:
        return self._order != list(range(self.frame_count))

    def reset(self, frame_count: Optional[int] = None) -> None:
        """Back to identity, optionally over a new frame count."""
        if frame_count is not None:
            self.frame_count = max(0, int(frame_count))
        self._order = list(range(self.frame_count))

    def stage(self, new_order: Sequence[int]) -> bool:
        if not is_permutation(new_order, self.frame_count):
            raise InvalidPermutationError(new_order, self.frame_count)
        self._order = [int(i) for i in new_order]
        return self.dirty

    def position_of(self, original_index: int) -> int:
        try:
            return self._order.index(int(original_index))
        except ValueError:
            raise IndexError(
                f"Frame index {original_index} out of range 0..{self.frame_count - 1}."
            ) from None

    def _swap(self, position: int, other: int) -> None:
        self._order[position], self._order[other] = self._order[other], self._order[position]

    def move_up(self, original_index: int) -> bool:
        position = self.position_of(original_index)
        if position == 0:
            return False
        self._swap(position, position - 1)
        return True

    def move_down(self, original_index: int) -> bool:
        position = self.position_of(original_index)
        if position >= len(self._order) - 1:
            return False
        self._swap(position, position + 1)
        return True

    def move_selection_up(self, original_indices: Iterable[int]) -> bool:
        """Move a group one slot earlier; blocked members stay put and anchor the rest."""
        chosen = {int(i) for i in original_indices}
        for index in chosen:
            self.position_of(index)
        moved = False
        for position in range(1, len(self._order)):
            if self._order[position] in chosen and self._order[position - 1] not in chosen:
                self._swap(position, position - 1)
                moved = True
        return moved

    def move_selection_down(self, original_indices: Iterable[int]) -> bool:
        chosen = {int(i) for i in original_indices}
        for index in chosen:
            self.position_of(index)
        moved = False
        for position in range(len(self._order) - 2, -1, -1):
            if self._order[position] in chosen and self._order[position + 1] not in chosen:
                self._swap(position, position + 1)
                moved = True
        return moved

    def commit(self) -> Optional[List[int]]:
        """Return the staged order and restart from identity; None when nothing is staged."""
        if not self.dirty:
            return None
        final_order = list(self._order)
        self.reset()
        return final_order

    def cancel(self) -> None:
        self.reset()
