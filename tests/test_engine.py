"""
Tests for the evolution engine: distance, fitness sharing, speciation,
crossover, structural mutations and the generation loop.
"""

import dataclasses
import math

import pytest

from shader_evolution import (
    BreedingExhaustedError,
    ConfigurationError,
    EvolutionConfig,
    EvolutionEngine,
    FunctionCallNode,
    InputNode,
    OutputNode,
    TemplateLibrary,
    WeightedSelector,
)

from helpers import make_genome


def weighted_genome(weight, innovation=0):
    """Output(vec3) fed by a vec3 input through a single connection."""
    return make_genome(
        [OutputNode('vec3'), InputNode('in', 'vec3')],
        [(innovation, 1, 0, 0, weight)],
    )


def retry(operation, genome, attempts=100):
    """Call operation(genome) until it succeeds, return the attempts left."""
    while attempts > 0 and not operation(genome):
        attempts -= 1
    return attempts


class TestDistance:
    """Compatibility distance and sharing."""

    @pytest.fixture
    def genome_pair(self):
        genome_a = make_genome([], [(0, 3, 5, 2, 2), (1, 3, 5, 2, math.inf)])
        genome_b = make_genome([], [(0, 3, 5, 2, 1), (2, 3, 5, 2, math.inf)])
        return genome_a, genome_b

    def test_distance(self, engine, genome_pair):
        # one disjoint, one excess, weight difference 1
        assert engine.distance(*genome_pair) == pytest.approx(221)

    def test_normalized_distance(self, config, templates, genome_pair):
        engine = EvolutionEngine(templates, dataclasses.replace(config, normalize_distance=True))
        assert engine.distance(*genome_pair) == pytest.approx(111, abs=0.01)

    def test_distance_is_symmetric(self, engine, genome_pair):
        genome_a, genome_b = genome_pair
        assert engine.distance(genome_a, genome_b) == engine.distance(genome_b, genome_a)

    def test_distance_to_self_is_zero(self, engine):
        genome = make_genome([], [(0, 1, 0, 0, 0.3), (4, 2, 0, 0, -1.2)])
        assert engine.distance(genome, genome) == 0
        assert engine.sharing(genome, genome) == 1

    def test_distance_with_empty_genome(self, engine):
        empty = make_genome([], [])
        genome = make_genome([], [(1, 0, 1, 0, 1.0), (2, 1, 2, 0, 1.0)])

        # every gene of the non-empty genome is excess
        assert engine.distance(empty, genome) == pytest.approx(2 * 20)
        assert engine.distance(genome, empty) == pytest.approx(2 * 20)
        assert engine.distance(empty, empty) == 0

    def test_disjoint_and_excess_counts(self, engine):
        genome_a = make_genome([], [(0, 0, 1, 0, 1.0), (2, 0, 1, 0, 1.0), (5, 0, 1, 0, 1.0)])
        genome_b = make_genome([], [(0, 0, 1, 0, 1.0), (3, 0, 1, 0, 1.0)])

        # innovation 5 is excess, 2 and 3 are disjoint
        assert engine.distance(genome_a, genome_b) == pytest.approx(2 * 200 + 20)

    def test_sharing_decreases_to_zero(self, engine):
        genome = weighted_genome(0)

        assert engine.sharing(genome, weighted_genome(0.5)) == pytest.approx(0.5)
        assert engine.sharing(genome, weighted_genome(1)) == 0
        assert engine.sharing(genome, weighted_genome(3)) == 0

    def test_sharing_exponent(self, config, templates):
        engine = EvolutionEngine(templates, dataclasses.replace(config, species_distance_exponent=2))
        assert engine.sharing(weighted_genome(0), weighted_genome(0.5)) == pytest.approx(0.75)

    def test_undefined_distance_shares_nothing(self, engine):
        genome_a = weighted_genome(math.inf)
        genome_b = weighted_genome(math.inf)

        assert math.isnan(engine.distance(genome_a, genome_b))
        assert engine.sharing(genome_a, genome_b) == 0


class TestFitnessAndSpecies:
    """Shared fitness, extraction of evaluated genomes and speciation."""

    @pytest.fixture
    def ranked_engine(self, engine):
        for i in range(4):
            engine.add_genome(weighted_genome(0.5 + i))
        engine.add_ranking(weighted_genome(1), 1)
        engine.add_ranking(weighted_genome(2), 5)
        return engine

    def test_compute_fitnesses(self, ranked_engine):
        ranked_engine.compute_fitnesses()
        genomes = ranked_engine.population

        assert len(genomes) == 6

        expected = [1 / 1.5, 3 / 2, 5 / 1.5, None, 1 / 2, 5 / 2]
        for genome, fitness in zip(genomes, expected):
            if fitness is None:
                assert not genome.was_evaluated
            else:
                assert genome.was_evaluated
                assert genome.fitness == pytest.approx(fitness, abs=0.01)

    def test_extract_evaluated_genomes(self, ranked_engine):
        ranked_engine.compute_fitnesses()
        unranked = ranked_engine.population[3]

        evaluated = ranked_engine.extract_evaluated_genomes()

        fitnesses = [genome.fitness for genome in evaluated]
        assert fitnesses == pytest.approx([5 / 1.5, 5 / 2, 3 / 2, 1 / 1.5, 1 / 2], abs=0.01)
        assert all(genome.was_evaluated for genome in evaluated)
        assert ranked_engine.population == []
        assert ranked_engine.backlog == [unranked]

    def test_speciate(self, ranked_engine):
        ranked_engine.compute_fitnesses()
        evaluated = ranked_engine.extract_evaluated_genomes()

        selector = WeightedSelector(ranked_engine.config.selection_coefficient)
        species = ranked_engine.speciate(evaluated, selector)

        assert len(species) == 3
        assert species[0].representative is evaluated[0]
        assert species[0].members == [evaluated[0], evaluated[1]]
        assert species[1].representative is evaluated[2]
        assert species[1].members == [evaluated[2], evaluated[4]]
        assert species[2].representative is evaluated[3]
        assert species[2].members == [evaluated[3]]

        assert selector.items == evaluated
        assert [ranked_engine.species_of[genome.genome_id] for genome in evaluated] == [0, 0, 1, 2, 1]

    def test_ranking_keeps_a_snapshot(self, engine):
        genome = weighted_genome(1)
        ranking = engine.add_ranking(genome, 3)

        genome.connections[0].weight = 10

        assert ranking.genome is not genome
        assert ranking.genome.connections[0].weight == 1
        assert ranking.fitness == 3
        assert engine.population == [genome]

    def test_ranking_a_population_member_does_not_duplicate_it(self, engine):
        genome = weighted_genome(1)
        engine.add_genome(genome)
        engine.add_ranking(genome, 2)
        assert engine.population == [genome]

    def test_ranking_restores_similar_backlog_genomes(self, engine):
        close = weighted_genome(0.5)
        far = weighted_genome(5)
        engine.add_genome(close)
        engine.add_genome(far)

        engine.evolve()
        assert engine.backlog == [close, far]

        ranked = weighted_genome(0.75)
        engine.add_ranking(ranked, 1)

        assert engine.population == [close, ranked]
        assert engine.backlog == [far]


class TestCrossover:
    """Innovation-aligned crossover."""

    def test_crossover(self, engine):
        genome_a = make_genome(
            [OutputNode('vec3'), InputNode('1.0', 'float'), FunctionCallNode('vec3', 'vec3', ['float'])],
            [(0, 1, 2, 0, 1), (1, 2, 0, 0, 3)],
        )
        genome_a.fitness = 4

        genome_b = make_genome(
            [OutputNode('vec3'), InputNode('1.0', 'float'), FunctionCallNode('vec3', 'vec3', ['float']),
             FunctionCallNode('f', 'float', [])],
            [(0, 1, 2, 0, 2), (2, 2, 0, 0, 4)],
        )
        genome_b.fitness = 2

        offspring = engine.crossover(genome_a, genome_b)

        assert offspring.is_valid()
        assert len(offspring.nodes) == 3
        assert len(offspring.connections) == 2

        first, second = offspring.connections
        assert (first.innovation, first.source, first.target, first.slot) == (0, 1, 2, 0)
        assert first.weight in (1, 2)
        assert first.enabled

        assert (second.innovation, second.source, second.target, second.slot) == (1, 2, 0, 0)
        assert second.weight == 3
        assert second.enabled

        assert offspring.fitness == 3

    def test_matched_genes_from_the_other_parent(self, config, templates):
        engine = EvolutionEngine(templates, dataclasses.replace(config, best_connection_probability=0))
        genome_a = make_genome([], [(0, 1, 0, 0, 1.0), (1, 2, 0, 0, 1.0), (5, 3, 0, 0, 1.0)])
        genome_b = make_genome([], [(0, 1, 0, 0, 7.0), (2, 2, 0, 0, 7.0), (3, 3, 0, 0, 7.0)])

        offspring = engine.crossover(genome_a, genome_b)

        assert [gene.innovation for gene in offspring.connections] == [0, 1, 5]
        assert [gene.weight for gene in offspring.connections] == [7.0, 1.0, 1.0]

    def test_offspring_genes_are_copies(self, engine):
        genome_a = weighted_genome(1)
        offspring = engine.crossover(genome_a, weighted_genome(2))

        offspring.connections[0].weight = 9
        assert genome_a.connections[0].weight == 1


class TestAddRandomConnection:
    """Random connection mutation."""

    def test_with_no_available_place(self, engine):
        genome = make_genome([OutputNode('vec2'), InputNode('in', 'vec2')], [(0, 1, 0, 0, 0)])

        assert retry(engine.add_random_connection, genome) == 0
        assert len(genome.nodes) == 2
        assert len(genome.connections) == 1

    def test_with_no_templates_available(self, engine):
        genome = make_genome([OutputNode('vec3'), InputNode('in', 'vec2')], [])

        assert retry(engine.add_random_connection, genome) == 0
        assert len(genome.nodes) == 2
        assert len(genome.connections) == 0

    def test_with_no_nodes(self, engine):
        genome = make_genome([], [])
        assert not engine.add_random_connection(genome)

    def test_with_same_types(self, engine):
        genome = make_genome([OutputNode('vec2'), InputNode('in', 'vec2')], [])

        assert retry(engine.add_random_connection, genome) > 0
        assert len(genome.nodes) == 2
        assert len(genome.connections) == 1

        connection = genome.connections[0]
        assert connection.innovation == 1
        assert (connection.source, connection.target, connection.slot) == (1, 0, 0)
        assert -1 <= connection.weight < 1
        assert connection.enabled

    def test_with_different_types(self, engine):
        genome = make_genome([OutputNode('vec3'), InputNode('in', 'float')], [])

        assert retry(engine.add_random_connection, genome) > 0
        assert len(genome.nodes) == 3
        assert genome.nodes[2] == FunctionCallNode('vec3', 'vec3', ['float'])
        assert len(genome.connections) == 2

        entry, exit_ = genome.connections
        assert (entry.innovation, entry.source, entry.target, entry.slot) == (1, 1, 2, 0)
        assert entry.weight == 1
        assert entry.enabled

        assert (exit_.innovation, exit_.source, exit_.target, exit_.slot) == (1, 2, 0, 0)
        assert exit_.enabled
        assert genome.is_valid()

    def test_never_creates_cycles(self, engine):
        genome = make_genome(
            [OutputNode('float')] + [FunctionCallNode('sin', 'float', ['float']) for _ in range(4)] +
            [InputNode('uTime', 'float')],
            [(0, 5, 1, 0, 1.0), (0, 1, 0, 0, 1.0)],
        )
        for _ in range(50):
            engine.add_random_connection(genome)
            assert genome.is_valid()


class TestAddRandomNode:
    """Connection splitting mutation."""

    def test_add_random_node(self, engine, vec3_genome):
        genome = vec3_genome

        assert engine.add_random_node(genome)

        assert len(genome.nodes) == 4
        inserted = genome.nodes[2:]
        assert all(isinstance(node, FunctionCallNode) for node in inserted)
        assert {node.name for node in inserted} == {'length', 'vec3'}
        assert {node.output_type for node in inserted} == {'float', 'vec3'}
        assert {node.input_types for node in inserted} == {('float',), ('vec3',)}

        assert len(genome.connections) == 4
        assert not genome.connections[0].enabled
        assert all(connection.innovation == 1 for connection in genome.connections[1:])
        assert all(connection.enabled for connection in genome.connections[1:])

        edges = {(c.source, c.target, c.slot, c.weight) for c in genome.connections[1:]}
        if genome.nodes[2].name == 'length':
            assert edges == {(1, 2, 0, 1), (2, 3, 0, 1), (3, 0, 0, 2)}
        else:
            assert edges == {(1, 3, 0, 1), (3, 2, 0, 1), (2, 0, 0, 2)}

        assert genome.is_valid()

    def test_without_connections(self, engine):
        genome = make_genome([OutputNode('vec3'), InputNode('in', 'vec3')], [])
        assert not engine.add_random_node(genome)
        assert len(genome.nodes) == 2

    def test_without_enabled_connections(self, engine, vec3_genome):
        vec3_genome.connections[0].enabled = False
        assert not engine.add_random_node(vec3_genome)
        assert len(vec3_genome.nodes) == 2

    def test_with_empty_library(self, config, vec3_genome):
        engine = EvolutionEngine(TemplateLibrary(), config)
        assert not engine.add_random_node(vec3_genome)

    def test_with_unbridgeable_template(self, config, templates, vec3_genome):
        # only vec3 -> float exists, so the float exit cannot reach the vec3 output
        engine = EvolutionEngine(TemplateLibrary(list(templates)[:1]), config)
        assert not engine.add_random_node(vec3_genome)

    def test_innovations_are_fresh(self, engine, vec3_genome):
        engine.next_innovation = 5
        assert engine.add_random_node(vec3_genome)
        assert {connection.innovation for connection in vec3_genome.connections[1:]} == {6}


class TestEvolve:
    """Generation loop."""

    def test_evolve(self, config, templates, rng, vec3_genome):
        engine = EvolutionEngine(templates, dataclasses.replace(config, population_size=10), rng=rng)
        genome = vec3_genome
        engine.add_genome(genome)

        engine.evolve()
        assert engine.population == []
        assert engine.backlog == [genome]
        assert engine.generation == 0

        engine.add_ranking(genome, 1)
        assert engine.backlog == []

        engine.evolve()
        assert len(engine.population) == 10
        assert engine.backlog == []
        assert engine.generation == 1
        assert all(offspring.is_valid() for offspring in engine.population)
        assert all(offspring is not genome for offspring in engine.population)

    def test_without_rankings(self, engine):
        genomes = [weighted_genome(i) for i in range(3)]
        for genome in genomes:
            engine.add_genome(genome)

        engine.evolve()

        assert engine.population == []
        assert engine.species == []
        assert engine.backlog == genomes

    def test_backlog_drops_oldest(self, config, templates):
        engine = EvolutionEngine(templates, dataclasses.replace(config, max_backlog=2))
        genomes = [weighted_genome(i) for i in range(3)]
        for genome in genomes:
            engine.add_genome(genome)

        engine.evolve()

        assert engine.backlog == genomes[1:]

    def test_interspecies_mating_uses_another_species(self, config, templates, rng):
        engine = EvolutionEngine(templates, dataclasses.replace(
            config, new_connection_probability=0, new_node_probability=0), rng=rng)
        strong = weighted_genome(0)
        weak = weighted_genome(5)
        strong.fitness, weak.fitness = 2.0, 1.0
        selector = WeightedSelector(config.selection_coefficient, rng)
        engine.species = engine.speciate([strong, weak], selector)
        assert len(engine.species) == 2

        pairs = []

        def crossover(parent_a, parent_b):
            pairs.append((parent_a, parent_b))
            return parent_a.copy()

        engine.crossover = crossover
        for _ in range(20):
            assert engine.breed(selector) is not None

        assert all(pair == (strong, weak) for pair in pairs)

    def test_bounded_breeding(self, config, templates):
        engine = EvolutionEngine(templates, dataclasses.replace(
            config, population_size=5, new_connection_probability=1.0, max_breeding_attempts=5))
        # no connection can ever be added to this genome
        genome = make_genome([OutputNode('vec2'), InputNode('in', 'vec2')], [(0, 1, 0, 0, 1.0)])
        engine.add_ranking(genome, 1)

        with pytest.raises(BreedingExhaustedError):
            engine.evolve()

    def test_stats_and_best(self, config, templates, rng, vec3_genome):
        engine = EvolutionEngine(templates, dataclasses.replace(config, population_size=4), rng=rng)
        assert engine.get_stats() == {
            'generation': 0, 'population_size': 0, 'backlog_size': 0, 'rankings': 0, 'species': 0
        }

        engine.add_ranking(vec3_genome, 1)
        engine.evolve()

        stats = engine.get_stats()
        assert stats['generation'] == 1
        assert stats['population_size'] == 4
        assert stats['rankings'] == 1
        assert stats['species'] == 1
        assert stats['fitness']['min'] <= stats['fitness']['mean'] <= stats['fitness']['max']
        assert stats['complexity']['nodes_max'] >= 2

        best = engine.get_best(2)
        assert len(best) == 2
        assert best[0].fitness >= best[1].fitness


class TestEngineSetup:
    """Construction and innovation numbering."""

    def test_invalid_config(self, templates):
        with pytest.raises(ConfigurationError):
            EvolutionEngine(templates, EvolutionConfig(species_distance_threshold=0))

    def test_templates_from_iterable(self, templates):
        engine = EvolutionEngine(list(templates))
        assert isinstance(engine.templates, TemplateLibrary)
        assert len(engine.templates) == 2

    def test_innovations_start_at_one(self, engine):
        assert engine.new_innovation() == 1
        assert engine.new_innovation() == 2

    def test_seeded_engines_agree(self, config, templates, vec3_genome):
        def run(seed):
            engine = EvolutionEngine(templates, dataclasses.replace(config, population_size=6), seed=seed)
            engine.add_ranking(vec3_genome, 1)
            engine.evolve()
            return [genome.to_shader() for genome in engine.population]

        assert run(7) == run(7)
