"""
shader_evolution/templates.py - Bridging subgraphs between node types
"""
import random
from typing import Callable, Iterable, List, Optional, Tuple, TYPE_CHECKING

from .selection import WeightedSelector

if TYPE_CHECKING:
    from .genome import Genome

# generate(genome, innovation) -> (entry node, entry slot, exit node)
GenerateFunction = Callable[['Genome', int], Tuple[int, int, int]]


class Template:
    """Generates a link from source_type to target_type made of new nodes.

    ``generate`` adds the nodes (and any inner connections, tagged with the
    given innovation number) to the genome. It returns the node and slot that
    should receive the source value, and the node whose output feeds the
    target.
    """

    def __init__(self, weight: float, source_type: str, target_type: str,
                 generate: GenerateFunction, name: str = None):
        self.weight = weight
        self.source_type = source_type
        self.target_type = target_type
        self.generate = generate
        self.name = name or f"{source_type}->{target_type}"

    def __repr__(self):
        return f"Template({self.name!r}, weight={self.weight})"


class TemplateLibrary:
    """Catalog of templates available to structural mutations"""

    def __init__(self, templates: Iterable[Template] = ()):
        self.templates: List[Template] = list(templates)

    def add(self, template: Template) -> None:
        self.templates.append(template)

    def draw(self, source_type: str, target_type: str, rng: random.Random) -> Optional[Template]:
        """Weighted draw among templates bridging source_type to target_type"""
        selector = WeightedSelector(rng=rng)
        for template in self.templates:
            if template.source_type == source_type and template.target_type == target_type:
                selector.add(template, template.weight)

        if not selector:
            return None
        return selector.draw()

    def choice(self, rng: random.Random) -> Optional[Template]:
        """Uniform draw over the whole library, whatever the types"""
        if not self.templates:
            return None
        return rng.choice(self.templates)

    def __len__(self) -> int:
        return len(self.templates)

    def __iter__(self):
        return iter(self.templates)
