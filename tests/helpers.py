"""
Helpers shared by the test modules.
"""

from shader_evolution import ConnectionGene, Genome


def make_genome(nodes, connections):
    """Build a genome from nodes and (innovation, source, target, slot, weight) tuples."""
    genome = Genome()
    for node in nodes:
        genome.add_node(node)
    for innovation, source, target, slot, weight in connections:
        genome.add_connection(ConnectionGene(innovation, source, target, slot, weight))
    return genome
