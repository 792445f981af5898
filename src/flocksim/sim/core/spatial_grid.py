from __future__ import annotations

import math
from typing import Dict, List, Sequence, Tuple

from pygame.math import Vector3

CellKey = Tuple[int, int, int]


def neighbors_within(index: int, positions: Sequence[Vector3], radius: float) -> List[int]:
    """Ids of every agent other than ``index`` at distance ``<= radius``."""
    origin = positions[index]
    pos_x = origin.x
    pos_y = origin.y
    pos_z = origin.z
    radius_sq = radius * radius
    found: List[int] = []
    for other, pos in enumerate(positions):
        if other == index:
            continue
        offset_x = pos.x - pos_x
        offset_y = pos.y - pos_y
        offset_z = pos.z - pos_z
        if offset_x * offset_x + offset_y * offset_y + offset_z * offset_z <= radius_sq:
            found.append(other)
    return found


class BruteForceNeighbors:
    def __init__(self) -> None:
        self._positions: Sequence[Vector3] = ()

    def rebuild(self, positions: Sequence[Vector3]) -> None:
        self._positions = positions

    def move(self, index: int, position: Vector3) -> None:
        # reads straight from the shared list, nothing to re-index
        pass

    def neighbors_within(self, index: int, radius: float) -> List[int]:
        return neighbors_within(index, self._positions, radius)


class SpatialGrid:
    def __init__(self, cell_size: float) -> None:
        self._cell_size = cell_size
        self._cells: Dict[CellKey, List[int]] = {}
        self._keys: List[CellKey] = []
        self._positions: Sequence[Vector3] = ()
        self._offset_cache: Dict[float, List[CellKey]] = {}

    def build_neighbor_cell_offsets(self, radius: float) -> List[CellKey]:
        offsets = self._offset_cache.get(radius)
        if offsets is None:
            cell_range = int(math.ceil(radius / self._cell_size))
            span = range(-cell_range, cell_range + 1)
            offsets = [(dx, dy, dz) for dx in span for dy in span for dz in span]
            self._offset_cache[radius] = offsets
        return offsets

    def clear(self) -> None:
        self._cells.clear()
        self._keys.clear()

    def rebuild(self, positions: Sequence[Vector3]) -> None:
        self.clear()
        self._positions = positions
        for index, position in enumerate(positions):
            key = self._cell_key(position)
            self._keys.append(key)
            self._cells.setdefault(key, []).append(index)

    def move(self, index: int, position: Vector3) -> None:
        old_key = self._keys[index]
        new_key = self._cell_key(position)
        if old_key == new_key:
            return
        bucket = self._cells[old_key]
        bucket.remove(index)
        if not bucket:
            del self._cells[old_key]
        self._cells.setdefault(new_key, []).append(index)
        self._keys[index] = new_key

    def neighbors_within(self, index: int, radius: float) -> List[int]:
        """
        Same result as the brute-force scan, sorted by id.

        Sorting keeps averages summed in the same order as a linear scan, so both
        strategies produce bit-identical trajectories.
        """

        positions = self._positions
        origin = positions[index]
        pos_x = origin.x
        pos_y = origin.y
        pos_z = origin.z
        radius_sq = radius * radius
        base_x, base_y, base_z = self._keys[index]
        cells = self._cells
        found: List[int] = []

        for dx, dy, dz in self.build_neighbor_cell_offsets(radius):
            bucket = cells.get((base_x + dx, base_y + dy, base_z + dz))
            if not bucket:
                continue
            for other in bucket:
                if other == index:
                    continue
                pos = positions[other]
                offset_x = pos.x - pos_x
                offset_y = pos.y - pos_y
                offset_z = pos.z - pos_z
                if offset_x * offset_x + offset_y * offset_y + offset_z * offset_z <= radius_sq:
                    found.append(other)
        found.sort()
        return found

    def occupied_cells(self) -> int:
        return len(self._cells)

    def _cell_key(self, position: Vector3) -> CellKey:
        size = self._cell_size
        return (int(position.x // size), int(position.y // size), int(position.z // size))


def create_neighbor_query(neighbor_search: str, cell_size: float) -> BruteForceNeighbors | SpatialGrid:
    if neighbor_search == "grid":
        return SpatialGrid(cell_size)
    return BruteForceNeighbors()
