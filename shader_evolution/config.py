"""
shader_evolution/config.py - Evolution coefficients
"""
import json
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import ConfigurationError


@dataclass
class EvolutionConfig:
    """Constants driving fitness sharing, selection and breeding."""

    # Population
    population_size: int = 20             # Genomes bred each generation
    max_backlog: int = 100                # Unranked genomes kept, oldest dropped first

    # Distance between genomes
    distance_disjoint: float = 1.0        # Coefficient of disjoint connection count
    distance_excess: float = 1.0          # Coefficient of excess connection count
    distance_weight_difference: float = 0.4   # Coefficient of matched weight differences
    normalize_distance: bool = False      # Divide counts by genome size, weights by matches

    # Fitness sharing
    species_distance_threshold: float = 3.0   # Distance at which sharing reaches 0
    species_distance_exponent: float = 1.0    # Shape of the sharing curve

    # Selection
    selection_coefficient: float = 0.9    # Roulette decay over fitness-sorted genomes
    interspecies_mate_probability: float = 0.01

    # Crossover and mutation
    best_connection_probability: float = 0.5  # Take the fittest parent's matched gene
    new_connection_probability: float = 0.05
    new_node_probability: float = 0.03
    weight_mutation_probability: float = 0.8
    mutate_weight_add_coefficient: float = 0.5
    mutate_weight_multiply_coefficient: float = 0.5

    # None keeps breeding until the population is full, however long it takes
    max_breeding_attempts: Optional[int] = None

    def validate(self) -> Tuple[bool, List[str]]:
        """Validate configuration."""
        errors = []

        if self.population_size < 0:
            errors.append("population_size must be >= 0")

        if self.max_backlog < 0:
            errors.append("max_backlog must be >= 0")

        if self.species_distance_threshold <= 0:
            errors.append("species_distance_threshold must be > 0")

        if self.species_distance_exponent <= 0:
            errors.append("species_distance_exponent must be > 0")

        for name in ('distance_disjoint', 'distance_excess', 'distance_weight_difference',
                     'mutate_weight_add_coefficient', 'mutate_weight_multiply_coefficient'):
            if getattr(self, name) < 0:
                errors.append(f"{name} must be >= 0")

        for name in ('interspecies_mate_probability', 'best_connection_probability',
                     'new_connection_probability', 'new_node_probability',
                     'weight_mutation_probability'):
            if not (0.0 <= getattr(self, name) <= 1.0):
                errors.append(f"{name} must be in [0, 1]")

        if self.selection_coefficient <= 0:
            errors.append("selection_coefficient must be > 0")

        if self.max_breeding_attempts is not None and self.max_breeding_attempts < 1:
            errors.append("max_breeding_attempts must be >= 1 or None")

        return (len(errors) == 0, errors)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvolutionConfig':
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

        config = cls(**data)
        try:
            ok, errors = config.validate()
        except TypeError as e:
            raise ConfigurationError(f"Configuration value of the wrong type: {e}") from e
        if not ok:
            raise ConfigurationError("; ".join(errors))
        return config

    @classmethod
    def from_json(cls, filename: str) -> 'EvolutionConfig':
        with open(filename, 'r') as f:
            return cls.from_dict(json.load(f))
