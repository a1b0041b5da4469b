"""
shader_evolution/glsl.py - Default GLSL primitives, templates and seed genome
"""
from typing import List

from .genes import ConnectionGene
from .genome import Genome
from .nodes import (BinaryOperatorNode, FunctionCallNode, InputNode, MemberNode,
                    OutputNode, UnaryOperatorNode)
from .templates import Template, TemplateLibrary

UNIFORMS = {
    'uResolution': 'vec2',
    'uTime': 'float',
}

COORDINATES = 'gl_FragCoord.xy/uResolution'

FRAGMENT_HEADER = (
    "precision mediump float;\n"
    + ''.join(f"uniform {value_type} {name};\n" for name, value_type in UNIFORMS.items())
)

# Primitive sets for the default library
FLOAT_FUNCTIONS = ['sin', 'cos', 'abs', 'fract', 'sqrt', 'exp']
VECTOR_FUNCTIONS = ['sin', 'cos', 'abs', 'fract', 'normalize']
SWIZZLES = {
    ('vec2', 'float'): ['x', 'y'],
    ('vec3', 'float'): ['x', 'y', 'z'],
    ('vec3', 'vec2'): ['xy', 'yz', 'xz'],
}


def function_template(name: str, source_type: str, target_type: str,
                      weight: float = 1.0) -> Template:
    """Template inserting a single one-argument function call"""
    def generate(genome, innovation):
        index = genome.add_node(FunctionCallNode(name, target_type, [source_type]))
        return index, 0, index
    return Template(weight, source_type, target_type, generate, name=f"{name}({source_type})")


def member_template(name: str, source_type: str, target_type: str,
                    weight: float = 1.0) -> Template:
    def generate(genome, innovation):
        index = genome.add_node(MemberNode(name, target_type, source_type))
        return index, 0, index
    return Template(weight, source_type, target_type, generate, name=f"{source_type}.{name}")


def unary_template(operator: str, value_type: str, weight: float = 1.0) -> Template:
    def generate(genome, innovation):
        index = genome.add_node(UnaryOperatorNode(operator, value_type, value_type))
        return index, 0, index
    return Template(weight, value_type, value_type, generate, name=f"{operator}{value_type}")


def operand_template(operator: str, value_type: str, operand: str,
                     operand_type: str, weight: float = 1.0) -> Template:
    """Template combining the value with an input, e.g. ``x*uTime``.

    The operand node is wired to the operator's second slot with a gene
    carrying the mutation's innovation number.
    """
    def generate(genome, innovation):
        operand_index = genome.add_node(InputNode(operand, operand_type))
        index = genome.add_node(BinaryOperatorNode(operator, value_type, [value_type, operand_type]))
        genome.add_connection(ConnectionGene(innovation, operand_index, index, 1, 1.0))
        return index, 0, index
    return Template(weight, value_type, value_type, generate,
                    name=f"{value_type}{operator}{operand}")


def default_templates() -> TemplateLibrary:
    """Build the default library of bridges between float, vec2 and vec3"""
    library = TemplateLibrary()

    # Conversions
    library.add(function_template('vec2', 'float', 'vec2'))
    library.add(function_template('vec3', 'float', 'vec3'))
    library.add(function_template('length', 'vec2', 'float'))
    library.add(function_template('length', 'vec3', 'float'))
    for (source_type, target_type), names in SWIZZLES.items():
        for name in names:
            library.add(member_template(name, source_type, target_type, weight=1.0 / len(names)))

    # Same-type operations, mostly used when splitting a connection
    for name in FLOAT_FUNCTIONS:
        library.add(function_template(name, 'float', 'float'))
    for value_type in ('vec2', 'vec3'):
        for name in VECTOR_FUNCTIONS:
            library.add(function_template(name, value_type, value_type))
    for value_type in ('float', 'vec2', 'vec3'):
        library.add(unary_template('-', value_type, weight=0.5))
        library.add(operand_template('*', value_type, 'uTime', 'float', weight=0.5))
        library.add(operand_template('+', value_type, 'uTime', 'float', weight=0.5))

    return library


def seed_genome() -> Genome:
    """Minimal valid genome: the pixel coordinates as an RGB color.

    Its only connection uses innovation 0, which the engine never hands out,
    so every seed aligns with every other.
    """
    genome = Genome()
    output = genome.add_node(OutputNode('vec3'))
    color = genome.add_node(InputNode(f"vec3({COORDINATES},0.5)", 'vec3'))
    genome.add_node(InputNode(COORDINATES, 'vec2'))
    for name, value_type in UNIFORMS.items():
        genome.add_node(InputNode(name, value_type))
    genome.add_connection(ConnectionGene(0, color, output, 0, 1.0))
    return genome


def fragment_shader(genome: Genome) -> str:
    """Wrap the genome's statements in a complete fragment shader"""
    outputs: List[int] = [index for index, node in enumerate(genome.nodes)
                          if isinstance(node, OutputNode)]
    if not outputs:
        raise ValueError("Genome has no output node")

    output = outputs[0]
    output_type = genome.nodes[output].output_type
    if output_type == 'vec3':
        color = f"vec4(_{output},1.0)"
    elif output_type == 'float':
        color = f"vec4(vec3(_{output}),1.0)"
    elif output_type == 'vec4':
        color = f"_{output}"
    else:
        raise ValueError(f"Unsupported output type: {output_type}")

    body = ''.join(f"\t{line}\n" for line in genome.to_shader())
    return f"{FRAGMENT_HEADER}void main() {{\n{body}\tgl_FragColor={color};\n}}\n"
