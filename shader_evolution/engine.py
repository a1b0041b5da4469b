"""
shader_evolution/engine.py - Ranking-driven evolution of shader genomes

The engine never scores a shader itself. Users rank a few genomes; every other
genome inherits the mean fitness of the rankings it resembles (fitness
sharing), is grouped into species and bred NEAT-style: crossover aligned on
innovation numbers, then structural mutations that splice typed templates
into the graph.
"""
import math
import random
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
from loguru import logger

from .config import EvolutionConfig
from .exceptions import BreedingExhaustedError, ConfigurationError
from .genes import ConnectionGene, Ranking
from .genome import Genome
from .nodes import OutputNode
from .selection import Species, WeightedSelector
from .templates import Template, TemplateLibrary

ADD_CONNECTION_ATTEMPTS = 10
ADD_NODE_ATTEMPTS = 5


def _fitness_key(genome: Genome) -> float:
    return genome.fitness


class EvolutionEngine:
    """Owns the population, the rankings and the backlog of unranked genomes"""

    def __init__(self, templates: Union[TemplateLibrary, Iterable[Template]],
                 config: EvolutionConfig = None, rng: random.Random = None,
                 seed: int = None):
        self.config = config or EvolutionConfig()
        ok, errors = self.config.validate()
        if not ok:
            raise ConfigurationError("; ".join(errors))

        if not isinstance(templates, TemplateLibrary):
            templates = TemplateLibrary(templates)
        self.templates = templates
        self.rng = rng or random.Random(seed)

        self.population: List[Genome] = []
        self.rankings: List[Ranking] = []
        # Genomes which don't share anything with any ranking yet
        self.backlog: List[Genome] = []

        self.species: List[Species] = []
        # genome_id -> index in self.species, rebuilt every generation
        self.species_of: Dict[str, int] = {}

        self.generation = 0
        self.next_innovation = 0

    def new_innovation(self) -> int:
        self.next_innovation += 1
        return self.next_innovation

    def add_genome(self, genome: Genome) -> None:
        self.population.append(genome)

    def add_ranking(self, genome: Genome, fitness: float) -> Ranking:
        """Record a user ranking.

        Backlog genomes which share with the ranked genome come back into the
        population, and so does the ranked genome itself.
        """
        ranking = Ranking(genome.copy(), fitness)
        self.rankings.append(ranking)

        waiting = []
        for candidate in self.backlog:
            if self.sharing(candidate, ranking.genome) > 0:
                self.population.append(candidate)
            else:
                waiting.append(candidate)
        self.backlog = waiting

        if not any(member is genome for member in self.population):
            self.population.append(genome)

        logger.debug(f"Ranking {fitness} recorded, {len(self.backlog)} genomes still awaiting rankings")
        return ranking

    # ------------------------------------------------------------------
    # Similarity
    # ------------------------------------------------------------------

    def distance(self, genome_a: Genome, genome_b: Genome) -> float:
        """Compatibility distance between two genomes.

        Genes are aligned by position while their innovation numbers agree.
        Past that point, the trailing genes of one genome whose innovations
        exceed the other's last one are excess genes; the remaining unmatched
        genes are disjoint.
        """
        connections_a = genome_a.connections
        connections_b = genome_b.connections
        longest = max(len(connections_a), len(connections_b))

        # total weight difference over the matching prefix
        matched = 0
        weight_difference = 0.0
        for connection_a, connection_b in zip(connections_a, connections_b):
            if connection_a.innovation != connection_b.innovation:
                break
            weight_difference += abs(connection_a.weight - connection_b.weight)
            matched += 1

        excess = 0
        if matched < longest:
            excess = self._count_excess(connections_a, connections_b, matched)

        disjoint = len(connections_a) + len(connections_b) - 2 * matched - excess

        config = self.config
        if config.normalize_distance:
            if longest:
                disjoint /= longest
                excess /= longest
            if matched:
                weight_difference /= matched

        return (config.distance_disjoint * disjoint +
                config.distance_excess * excess +
                config.distance_weight_difference * weight_difference)

    @staticmethod
    def _count_excess(connections_a: List[ConnectionGene],
                      connections_b: List[ConnectionGene], matched: int) -> int:
        """Count the trailing genes of the genome whose last innovation is higher"""
        if not connections_b or (connections_a and
                                 connections_a[-1].innovation > connections_b[-1].innovation):
            longer, shorter = connections_a, connections_b
        else:
            longer, shorter = connections_b, connections_a

        last = shorter[-1].innovation if shorter else None
        excess = 0
        index = len(longer) - 1
        while index >= matched and (last is None or longer[index].innovation > last):
            excess += 1
            index -= 1
        return excess

    def sharing(self, genome_a: Genome, genome_b: Genome) -> float:
        """1 for identical genomes, down to 0 at the species distance threshold"""
        distance = self.distance(genome_a, genome_b)
        if math.isnan(distance):
            return 0.0

        ratio = distance / self.config.species_distance_threshold
        return max(1 - ratio ** self.config.species_distance_exponent, 0.0)

    # ------------------------------------------------------------------
    # Fitness
    # ------------------------------------------------------------------

    def compute_fitness(self, genome: Genome) -> None:
        """Average the fitness of every ranking the genome shares with"""
        fitness_sum = 0.0
        count = 0

        for ranking in self.rankings:
            if self.sharing(genome, ranking.genome) > 0:
                fitness_sum += ranking.fitness
                count += 1

        genome.was_evaluated = count > 0
        if genome.was_evaluated:
            genome.fitness = fitness_sum / count

    def compute_fitnesses(self) -> None:
        """Compute all genomes' fitness with explicit fitness sharing"""
        for genome in self.population:
            self.compute_fitness(genome)

            crowding = sum(1.0 if other is genome else self.sharing(genome, other)
                           for other in self.population)
            genome.fitness /= crowding

    def extract_evaluated_genomes(self) -> List[Genome]:
        """Empty the population, moving genomes without rankings to the backlog.

        Returns the evaluated genomes, fittest first.
        """
        evaluated = []
        for genome in self.population:
            if genome.was_evaluated:
                evaluated.append(genome)
            else:
                self.backlog.append(genome)
        self.population = []

        evaluated.sort(key=_fitness_key, reverse=True)
        return evaluated

    def speciate(self, evaluated: List[Genome], selector: WeightedSelector) -> List[Species]:
        """Fill the global selector and group genomes into species.

        Each genome joins the first species whose representative it shares
        with, otherwise it founds a new one.
        """
        species: List[Species] = []
        self.species_of = {}

        for genome in evaluated:
            selector.add(genome)

            for index, candidate in enumerate(species):
                if self.sharing(genome, candidate.representative) > 0:
                    candidate.add(genome)
                    self.species_of[genome.genome_id] = index
                    break
            else:
                self.species_of[genome.genome_id] = len(species)
                species.append(Species(genome, self.config.selection_coefficient, self.rng))

        return species

    # ------------------------------------------------------------------
    # Breeding
    # ------------------------------------------------------------------

    def evolve(self) -> None:
        """Replace the population by offspring of the evaluated genomes"""
        self.compute_fitnesses()

        evaluated = self.extract_evaluated_genomes()

        overflow = len(self.backlog) - self.config.max_backlog
        if overflow > 0:
            del self.backlog[:overflow]
        self.backlog.sort(key=_fitness_key, reverse=True)

        if not evaluated:
            self.species = []
            self.species_of = {}
            logger.warning(f"No genome shares with any of the {len(self.rankings)} rankings; "
                           f"{len(self.backlog)} genomes await rankings")
            return

        selector = WeightedSelector(self.config.selection_coefficient, self.rng)
        self.species = self.speciate(evaluated, selector)

        max_attempts = self.config.max_breeding_attempts
        failures = 0
        while len(self.population) < self.config.population_size:
            offspring = self.breed(selector)
            if offspring is None:
                failures += 1
                if max_attempts is not None and failures >= max_attempts:
                    raise BreedingExhaustedError(
                        f"{failures} offspring discarded in a row while breeding generation "
                        f"{self.generation + 1}")
                continue

            failures = 0
            self.population.append(offspring)

        self.generation += 1
        logger.info(f"Generation {self.generation}: {len(self.population)} genomes bred from "
                    f"{len(evaluated)} evaluated in {len(self.species)} species, "
                    f"{len(self.backlog)} awaiting rankings")

    def breed(self, selector: WeightedSelector) -> Optional[Genome]:
        """Produce one offspring, or None if it had to be discarded"""
        config = self.config

        parent_a = selector.draw()
        species_index = self.species_of[parent_a.genome_id]
        if self.rng.random() < config.interspecies_mate_probability and len(self.species) > 1:
            other_index = self.rng.randrange(len(self.species) - 1)
            if other_index >= species_index:
                other_index += 1
            species_index = other_index
        parent_b = self.species[species_index].draw()

        parents = sorted([parent_a, parent_b], key=_fitness_key, reverse=True)
        offspring = self.crossover(parents[0], parents[1])

        if self.rng.random() < config.new_connection_probability and not self.add_random_connection(offspring):
            logger.debug("Offspring discarded: no connection could be added")
            return None

        if self.rng.random() < config.new_node_probability and not self.add_random_node(offspring):
            logger.debug("Offspring discarded: no node could be added")
            return None

        if not offspring.is_valid():
            logger.debug("Offspring discarded: invalid graph")
            return None

        offspring.mutate_weights(self.rng, config.weight_mutation_probability,
                                 config.mutate_weight_add_coefficient,
                                 config.mutate_weight_multiply_coefficient)
        return offspring

    def crossover(self, parent_a: Genome, parent_b: Genome) -> Genome:
        """Generate a genome based on two genomes.

        Assumes parent_a.fitness >= parent_b.fitness. The offspring takes all
        of parent_a's nodes; genes matching by position and innovation come
        from either parent, the rest from parent_a only.
        """
        offspring = Genome(parent_a.nodes)

        inherited = 0
        for connection_a, connection_b in zip(parent_a.connections, parent_b.connections):
            if connection_a.innovation != connection_b.innovation:
                break
            if self.rng.random() < self.config.best_connection_probability:
                offspring.add_connection(connection_a.copy())
            else:
                offspring.add_connection(connection_b.copy())
            inherited += 1

        for connection in parent_a.connections[inherited:]:
            offspring.add_connection(connection.copy())

        offspring.fitness = (parent_a.fitness + parent_b.fitness) * 0.5
        return offspring

    def bridging_connect(self, genome: Genome, innovation: int, source: int,
                         target: int, slot: int, weight: float) -> bool:
        """Connect two nodes, through a random template if their types differ.

        Returns whether the connection was made.
        """
        source_type = genome.nodes[source].output_type
        target_type = genome.nodes[target].input_types[slot]
        if source_type == target_type:
            genome.add_connection(ConnectionGene(innovation, source, target, slot, weight))
            return True

        template = self.templates.draw(source_type, target_type, self.rng)
        if template is None:
            return False

        entry, entry_slot, exit_node = template.generate(genome, innovation)
        genome.add_connection(ConnectionGene(innovation, source, entry, entry_slot, 1.0))
        genome.add_connection(ConnectionGene(innovation, exit_node, target, slot, weight))
        return True

    def add_random_connection(self, genome: Genome) -> bool:
        """Add a connection between two random nodes without creating a cycle"""
        node_count = len(genome.nodes)
        if node_count == 0:
            return False

        for _ in range(ADD_CONNECTION_ATTEMPTS):
            source = self.rng.randrange(node_count)
            target = self.rng.randrange(node_count)

            if source == target:
                continue

            if isinstance(genome.nodes[source], OutputNode):
                continue

            # prevent graph cycles
            if genome.reaches(target, source):
                continue

            arity = genome.nodes[target].arity
            if arity == 0:
                continue

            slot = self.rng.randrange(arity)
            if genome.has_connection(source, target, slot):
                continue

            weight = self.rng.random() * 2 - 1
            return self.bridging_connect(genome, self.new_innovation(), source, target, slot, weight)

        return False

    def add_random_node(self, genome: Genome) -> bool:
        """Split a random enabled connection with a random template"""
        if not genome.connections:
            return False

        for _ in range(ADD_NODE_ATTEMPTS):
            connection = self.rng.choice(genome.connections)
            if connection.enabled:
                break
        else:
            return False

        connection.enabled = False

        template = self.templates.choice(self.rng)
        if template is None:
            return False

        innovation = self.new_innovation()
        entry, entry_slot, exit_node = template.generate(genome, innovation)
        return (self.bridging_connect(genome, innovation, connection.source, entry, entry_slot, 1.0) and
                self.bridging_connect(genome, innovation, exit_node, connection.target,
                                      connection.slot, connection.weight))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_best(self, n: int = 1) -> List[Genome]:
        """Get the best n genomes"""
        return sorted(self.population, key=_fitness_key, reverse=True)[:n]

    def get_stats(self) -> Dict[str, Any]:
        """Get population statistics"""
        stats: Dict[str, Any] = {
            'generation': self.generation,
            'population_size': len(self.population),
            'backlog_size': len(self.backlog),
            'rankings': len(self.rankings),
            'species': len(self.species)
        }
        if not self.population:
            return stats

        fitnesses = [genome.fitness for genome in self.population]
        node_counts = [len(genome.nodes) for genome in self.population]
        connection_counts = [len(genome.connections) for genome in self.population]

        stats['fitness'] = {
            'min': float(np.min(fitnesses)),
            'max': float(np.max(fitnesses)),
            'mean': float(np.mean(fitnesses)),
            'std': float(np.std(fitnesses))
        }
        stats['complexity'] = {
            'nodes_mean': float(np.mean(node_counts)),
            'nodes_max': int(np.max(node_counts)),
            'connections_mean': float(np.mean(connection_counts)),
            'connections_max': int(np.max(connection_counts))
        }
        return stats
