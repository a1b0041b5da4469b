"""
shader_evolution/genes.py - Connection genes and user rankings
"""
from dataclasses import dataclass
from typing import Any, Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from .genome import Genome


@dataclass
class ConnectionGene:
    """Weighted edge from a node's output to a parameter slot of another node.

    Attributes:
        innovation: Historical marker shared by genes of common origin
        source: Index of the node producing the value
        target: Index of the node consuming the value
        slot: Parameter index on the target node
        weight: Multiplier applied to the source value
        enabled: False once the gene has been split by an inserted node
    """

    innovation: int
    source: int
    target: int
    slot: int
    weight: float
    enabled: bool = True

    def copy(self) -> 'ConnectionGene':
        return ConnectionGene(self.innovation, self.source, self.target,
                              self.slot, self.weight, self.enabled)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'innovation': self.innovation,
            'source': self.source,
            'target': self.target,
            'slot': self.slot,
            'weight': self.weight,
            'enabled': self.enabled
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConnectionGene':
        return cls(data['innovation'], data['source'], data['target'],
                   data['slot'], data['weight'], data.get('enabled', True))


@dataclass
class Ranking:
    """User ranking used for fitness computation"""

    genome: 'Genome'
    fitness: float
