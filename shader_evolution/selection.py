"""
shader_evolution/selection.py - Roulette wheel selection and species
"""
import bisect
import random
from typing import Any, List, Optional

from .exceptions import EmptySelectorError


class WeightedSelector:
    """Roulette wheel over items added one by one.

    Each added weight is scaled by ``decay`` raised to the number of previous
    additions. With items added best first and ``decay < 1``, this gives rank
    based selection pressure.
    """

    def __init__(self, decay: float = 1.0, rng: Optional[random.Random] = None):
        self.decay = decay
        self.rng = rng or random.Random()
        self.items: List[Any] = []
        self.cumulative_weights: List[float] = []
        self.total = 0.0
        self._increment = 1.0

    def add(self, item: Any, weight: float = 1.0) -> None:
        self.total += self._increment * weight
        self._increment *= self.decay
        self.items.append(item)
        self.cumulative_weights.append(self.total)

    def draw(self) -> Any:
        """Pick an item with probability proportional to its weight"""
        if not self.items:
            raise EmptySelectorError("Cannot draw from an empty selector")

        r = self.rng.random() * self.total
        index = bisect.bisect_right(self.cumulative_weights, r)
        return self.items[min(index, len(self.items) - 1)]

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)


class Species:
    """Niche of similar genomes, represented by its first member"""

    def __init__(self, representative: Any, decay: float = 1.0,
                 rng: Optional[random.Random] = None):
        self.representative = representative
        self.selector = WeightedSelector(decay, rng)
        self.add(representative)

    def add(self, genome: Any) -> None:
        self.selector.add(genome)

    def draw(self) -> Any:
        return self.selector.draw()

    @property
    def members(self) -> List[Any]:
        return self.selector.items

    def __len__(self) -> int:
        return len(self.selector)
