from typing import Dict, Iterable, List, Optional, Sequence


class SelectionController:
    """
    Tracks which frames are selected in the frame list.

    Single click selects one frame, Ctrl/Cmd click toggles membership and
    Shift click extends a range from the last touched frame. Ranges are taken
    over the order the frames are currently displayed in, which can be a
    staged reorder rather than the committed order.

    Attributes:
        frame_count (int): Number of frames currently in the collection.
        last_touched (Optional[int]): Anchor for range selection.
    """

    def __init__(self, frame_count: int):
        self.frame_count = max(0, int(frame_count))
        self._selected: set[int] = set()
        self.last_touched: Optional[int] = None

    @property
    def selected(self) -> List[int]:
        return sorted(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, index: int) -> bool:
        return index in self._selected

    def is_selected(self, index: int) -> bool:
        return index in self._selected

    def _check(self, index: int) -> int:
        index = int(index)
        if not 0 <= index < self.frame_count:
            raise IndexError(f"Frame index {index} out of range 0..{self.frame_count - 1}.")
        return index

    def select(self, index: int) -> None:
        index = self._check(index)
        self._selected = {index}
        self.last_touched = index

    def toggle(self, index: int) -> None:
        index = self._check(index)
        if index in self._selected:
            self._selected.discard(index)
        else:
            self._selected.add(index)
        self.last_touched = index

    def select_range(self, anchor_index: int, end_index: int, display_order: Optional[Sequence[int]] = None) -> List[int]:
        """Add every frame displayed between the two frames (inclusive)."""
        anchor_index = self._check(anchor_index)
        end_index = self._check(end_index)
        order = list(display_order) if display_order is not None else list(range(self.frame_count))
        try:
            start = order.index(anchor_index)
            end = order.index(end_index)
        except ValueError:
            return []
        if start > end:
            start, end = end, start
        span = order[start:end + 1]
        self._selected.update(span)
        self.last_touched = end_index
        return span

    def select_range_to(self, end_index: int, display_order: Optional[Sequence[int]] = None) -> List[int]:
        """Shift-click: extend from the last touched frame; no-op without an anchor."""
        if self.last_touched is None or not 0 <= self.last_touched < self.frame_count:
            return []
        return self.select_range(self.last_touched, end_index, display_order)

    def select_all(self) -> None:
        self._selected = set(range(self.frame_count))

    def clear(self) -> None:
        # The anchor survives so a following shift-click still has a start.
        self._selected.clear()

    def reset_anchor(self) -> None:
        self.last_touched = None

    def purge(self, frame_count: int) -> None:
        """Drop indices that no longer exist after the frame count changed."""
        self.frame_count = max(0, int(frame_count))
        self._selected = {i for i in self._selected if i < self.frame_count}
        if self.last_touched is not None and self.last_touched >= self.frame_count:
            self.last_touched = None

    def remap(self, mapping: Dict[int, Optional[int]], frame_count: int) -> None:
        """Carry the selection through a structural edit; unmapped indices are dropped."""
        self.frame_count = max(0, int(frame_count))
        remapped = set()
        for index in self._selected:
            new_index = mapping.get(index)
            if new_index is not None and 0 <= new_index < self.frame_count:
                remapped.add(new_index)
        self._selected = remapped
        if self.last_touched is not None:
            anchor = mapping.get(self.last_touched)
            self.last_touched = anchor if anchor is not None and anchor < self.frame_count else None

    def set_selected(self, indices: Iterable[int]) -> None:
        self._selected = {self._check(i) for i in indices}
