"""
Water distribution over a scanned terrain.

Every tick the water of each interior cell is handed to its lower
neighbours, visiting cells from the highest terrain to the lowest. The pass
works in place: a cell processed later already sees the water it received
earlier in the same tick. Water leaves the system over the border of the
grid, over terrain below sea level and through a slow universal decay.
"""

import logging

import numpy as np
from numba import njit

from ..core.config import WATER_HEIGHT_EPSILON

logger = logging.getLogger(__name__)

# North, south, east, west
_DX = (0, 0, 1, -1)
_DY = (-1, 1, 0, 0)


@njit(cache=True)
def flow_capacity(terrain, water, x, y, dest_x, dest_y):
    """
    Amount of water that could move from (x, y) to (dest_x, dest_y) this tick.

    Parameters
    ----------
    terrain, water : np.ndarray
        Grids indexed [y, x]
    x, y : int
        Source cell
    dest_x, dest_y : int
        Neighbour cell

    Returns
    -------
    float
        0 when the neighbour's absolute height is not below ours. All local
        water when even then the neighbour would stay above our bare ground,
        otherwise the absolute height difference.
    """
    here_water = water[y, x]
    here_terrain = terrain[y, x]
    here_absolute = here_terrain + here_water
    there_absolute = terrain[dest_y, dest_x] + water[dest_y, dest_x]

    # Water never flows uphill
    if here_absolute <= there_absolute:
        return 0.0

    if there_absolute + here_water > here_terrain:
        return float(here_water)

    return float(here_absolute - there_absolute)


@njit(cache=True)
def _collect_capacities(terrain, water, x, y, epsilon, dest_x, dest_y, flows):
    """Fills the scratch arrays with eligible neighbours, ascending by capacity."""
    count = 0
    for n in range(4):
        nx = x + _DX[n]
        ny = y + _DY[n]
        flow = flow_capacity(terrain, water, x, y, nx, ny)
        if flow > epsilon:
            # Insertion sort, there are at most four entries
            i = count
            while i > 0 and flows[i - 1] > flow:
                flows[i] = flows[i - 1]
                dest_x[i] = dest_x[i - 1]
                dest_y[i] = dest_y[i - 1]
                i -= 1
            flows[i] = flow
            dest_x[i] = nx
            dest_y[i] = ny
            count += 1
    return count


@njit(cache=True)
def _distribute_cell(terrain, water, x, y, epsilon, dest_x, dest_y, flows):
    """Hands the water of one cell to its neighbours. Returns the volume drained."""
    height, width = water.shape
    available = water[y, x]
    if available <= epsilon:
        return 0.0

    # At the end of the world the water falls off the table
    if x == 0 or y == 0 or x == width - 1 or y == height - 1:
        water[y, x] = 0.0
        return float(available)

    count = _collect_capacities(terrain, water, x, y, epsilon, dest_x, dest_y, flows)
    if count == 0:
        return 0.0

    total_requested = 0.0
    for i in range(count):
        total_requested += flows[i]
    # Usually far more is requested than available, every neighbour then
    # receives the same fraction of its capacity
    ratio = min(1.0, available / total_requested)

    for i in range(count):
        amount = flows[i] * ratio
        water[dest_y[i], dest_x[i]] += amount
        water[y, x] -= amount

    if water[y, x] < 0.0:
        water[y, x] = 0.0
    return 0.0


@njit(cache=True)
def _distribute_pass(terrain, water, xs, ys, epsilon):
    dest_x = np.empty(4, dtype=np.int64)
    dest_y = np.empty(4, dtype=np.int64)
    flows = np.empty(4, dtype=np.float64)
    drained = 0.0
    for i in range(xs.shape[0]):
        drained += _distribute_cell(terrain, water, xs[i], ys[i], epsilon, dest_x, dest_y, flows)
    return drained


def capacity_list(terrain, water, x, y, epsilon=WATER_HEIGHT_EPSILON):
    """
    Neighbours of (x, y) that can receive water, as ``(dest_x, dest_y, amount)``
    records sorted by ascending capacity. Only interior cells have four
    neighbours, a border cell raises ValueError.
    """
    height, width = water.shape
    if not (0 < x < width - 1 and 0 < y < height - 1):
        raise ValueError(f"({x}, {y}) is not an interior cell of a {width}x{height} grid")
    dest_x = np.empty(4, dtype=np.int64)
    dest_y = np.empty(4, dtype=np.int64)
    flows = np.empty(4, dtype=np.float64)
    count = _collect_capacities(terrain, water, x, y, epsilon, dest_x, dest_y, flows)
    return [(int(dest_x[i]), int(dest_y[i]), float(flows[i])) for i in range(count)]


def trickle_off(terrain, water, decay_rate=WATER_HEIGHT_EPSILON, sea_level=0.0):
    """
    Removes a little water from every cell, in place.

    Pools enclosed by higher terrain never get any outflow capacity, this
    makes them dry up eventually. Cells whose terrain is below sea level are
    emptied completely so water can leave through low ground.
    """
    np.subtract(water, decay_rate, out=water)
    np.maximum(water, 0.0, out=water)
    water[terrain < sea_level] = 0.0
    return water


class WaterDistributor:
    def __init__(self, width, height, epsilon=WATER_HEIGHT_EPSILON):
        self.width, self.height = width, height
        self.epsilon = epsilon
        self.water = np.zeros((height, width), dtype=np.float32)
        self.drained_volume = 0.0

    @property
    def total_volume(self):
        return float(self.water.sum(dtype=np.float64))

    def clear(self):
        self.water.fill(0.0)

    def inject(self, sources, amount):
        """Sets every source cell to ``amount``, sources never accumulate."""
        for x, y in sources:
            if 0 <= x < self.width and 0 <= y < self.height:
                self.water[y, x] = max(amount, 0.0)
            else:
                logger.debug("Water source (%s, %s) lies outside the %sx%s grid", x, y, self.width, self.height)

    def distribute(self, snapshot):
        """One in-place pass over the ordered cells, high ground first."""
        ordered = snapshot.ordered
        drained = _distribute_pass(snapshot.terrain, self.water, ordered.xs, ordered.ys, self.epsilon)
        self.drained_volume += drained
        return drained

    def drain_border(self):
        """Water on the border cells vanishes."""
        drained = 0.0
        for edge in (self.water[0, :], self.water[-1, :], self.water[1:-1, 0], self.water[1:-1, -1]):
            wet = edge > self.epsilon
            drained += float(edge[wet].sum(dtype=np.float64))
            edge[wet] = 0.0
        self.drained_volume += drained
        return drained

    def decay(self, snapshot, decay_rate, sea_level):
        return trickle_off(snapshot.terrain, self.water, decay_rate, sea_level)

    def tick(self, snapshot, sources, amount):
        self.inject(sources, amount)
        drained = self.distribute(snapshot)
        drained += self.drain_border()
        return drained
