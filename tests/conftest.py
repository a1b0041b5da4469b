"""
Pytest configuration and shared fixtures for shader_evolution tests.
"""

import random

import pytest

from shader_evolution import (
    EvolutionConfig,
    EvolutionEngine,
    FunctionCallNode,
    InputNode,
    OutputNode,
    Template,
    TemplateLibrary,
)

from helpers import make_genome


def _length_generate(genome, innovation):
    index = genome.add_node(FunctionCallNode('length', 'float', ['vec3']))
    return index, 0, index


def _vec3_generate(genome, innovation):
    index = genome.add_node(FunctionCallNode('vec3', 'vec3', ['float']))
    return index, 0, index


@pytest.fixture
def config():
    """Coefficients with large structural penalties and a unit sharing radius."""
    return EvolutionConfig(
        population_size=0,
        best_connection_probability=1.0,
        distance_disjoint=200,
        distance_excess=20,
        distance_weight_difference=1,
        interspecies_mate_probability=1.0,
        max_backlog=100,
        mutate_weight_add_coefficient=1,
        mutate_weight_multiply_coefficient=1,
        new_connection_probability=0.1,
        new_node_probability=0.11,
        selection_coefficient=0.9,
        species_distance_exponent=1,
        species_distance_threshold=1,
        weight_mutation_probability=1.0,
    )


@pytest.fixture
def templates():
    """Two conversions: vec3 -> float through length(), float -> vec3 through vec3()."""
    return TemplateLibrary([
        Template(1, 'vec3', 'float', _length_generate),
        Template(2, 'float', 'vec3', _vec3_generate),
    ])


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def engine(config, templates, rng):
    return EvolutionEngine(templates, config, rng=rng)


@pytest.fixture
def vec3_genome():
    """Output(vec3) fed by a vec3 input with weight 2."""
    return make_genome(
        [OutputNode('vec3'), InputNode('in', 'vec3')],
        [(0, 1, 0, 0, 2)],
    )
