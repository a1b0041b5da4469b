"""
shader_evolution - Interactive evolution of fragment shaders

A NEAT-style genetic programming system where genomes are typed graphs of
shader expressions, bred from sparse human rankings through fitness sharing.
"""

__version__ = "0.1.0"
__author__ = "Shader Evolution Project"

from .exceptions import (
    ShaderEvolutionError, EmptySelectorError, ConfigurationError, BreedingExhaustedError
)
from .nodes import (
    Node, InputNode, OutputNode, MemberNode, BinaryOperatorNode, UnaryOperatorNode,
    FunctionCallNode, ArrayAccessNode, node_from_dict
)
from .genes import ConnectionGene, Ranking
from .genome import Genome
from .selection import WeightedSelector, Species
from .templates import Template, TemplateLibrary
from .config import EvolutionConfig
from .engine import EvolutionEngine
from .glsl import default_templates, seed_genome, fragment_shader
from .archive import EvolutionArchive

__all__ = [
    'ShaderEvolutionError', 'EmptySelectorError', 'ConfigurationError', 'BreedingExhaustedError',
    'Node', 'InputNode', 'OutputNode', 'MemberNode', 'BinaryOperatorNode',
    'UnaryOperatorNode', 'FunctionCallNode', 'ArrayAccessNode', 'node_from_dict',
    'ConnectionGene', 'Ranking',
    'Genome',
    'WeightedSelector', 'Species',
    'Template', 'TemplateLibrary',
    'EvolutionConfig',
    'EvolutionEngine',
    'default_templates', 'seed_genome', 'fragment_shader',
    'EvolutionArchive'
]
