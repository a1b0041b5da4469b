"""
shader_evolution/genome.py - Genome graph representation and JSON serialization
"""
import heapq
import json
import math
import random
import uuid
from typing import Any, Dict, List, Optional

from .genes import ConnectionGene
from .nodes import Node, node_from_dict


class Genome:
    """Represents an individual as a typed graph of shader nodes

    Nodes are referenced by their index in ``nodes``, which never changes once
    a node is added. ``connections`` keeps creation order; that order is also
    the alignment order used when comparing and crossing genomes.
    """

    def __init__(self, nodes: List[Node] = None, connections: List[ConnectionGene] = None):
        self.nodes = list(nodes) if nodes else []
        self.connections = list(connections) if connections else []

        self.genome_id = uuid.uuid4().hex
        self.fitness = 0.0
        self.was_evaluated = False

    def add_node(self, node: Node) -> int:
        """Append a node and return its index"""
        self.nodes.append(node)
        return len(self.nodes) - 1

    def add_connection(self, connection: ConnectionGene) -> None:
        self.connections.append(connection)

    def reaches(self, source: int, target: int) -> bool:
        """Whether a path of connections leads from source to target.

        Disabled connections are followed too.
        """
        pending = [source]
        visited = {source}

        while pending:
            node_index = pending.pop()
            for connection in self.connections:
                if connection.source != node_index:
                    continue
                if connection.target == target:
                    return True
                if connection.target not in visited:
                    visited.add(connection.target)
                    pending.append(connection.target)

        return False

    def has_connection(self, source: int, target: int, slot: int) -> bool:
        return any(connection.source == source and
                   connection.target == target and
                   connection.slot == slot
                   for connection in self.connections)

    def _in_range(self, connection: ConnectionGene) -> bool:
        node_count = len(self.nodes)
        if not (0 <= connection.source < node_count and 0 <= connection.target < node_count):
            return False
        return 0 <= connection.slot < self.nodes[connection.target].arity

    def topological_order(self) -> Optional[List[int]]:
        """Return node indices sorted so that sources come before targets.

        Kahn's algorithm over every connection, enabled or not. Among ready
        nodes the lowest index goes first. Returns None when the graph is
        cyclic or a connection points outside the graph.
        """
        if not all(self._in_range(connection) for connection in self.connections):
            return None

        in_degrees = [0] * len(self.nodes)
        outgoing: Dict[int, List[int]] = {}
        for connection in self.connections:
            in_degrees[connection.target] += 1
            outgoing.setdefault(connection.source, []).append(connection.target)

        ready = [index for index, degree in enumerate(in_degrees) if degree == 0]
        heapq.heapify(ready)

        order = []
        while ready:
            node_index = heapq.heappop(ready)
            order.append(node_index)
            for target in outgoing.get(node_index, []):
                in_degrees[target] -= 1
                if in_degrees[target] == 0:
                    heapq.heappush(ready, target)

        if len(order) < len(self.nodes):
            return None
        return order

    def is_valid(self) -> bool:
        """Check that connection types are correct and that the graph is acyclic"""
        for connection in self.connections:
            if not self._in_range(connection):
                return False

            output_type = self.nodes[connection.source].output_type
            input_type = self.nodes[connection.target].input_types[connection.slot]
            if output_type != input_type:
                return False

        return self.topological_order() is not None

    def mutate_weights(self, rng: random.Random, probability: float,
                       add_coefficient: float, multiply_coefficient: float) -> None:
        """Perturb each connection weight with the given probability.

        The weight first receives a Laplace-distributed offset, then is scaled
        up or down by a factor in [1, 1 + multiply_coefficient).
        """
        for connection in self.connections:
            if rng.random() < probability:
                sign = 1 if rng.random() < 0.5 else -1
                offset = sign * -math.log(1 - rng.random()) * add_coefficient

                factor = 1 + rng.random() * multiply_coefficient
                if rng.random() < 0.5:
                    factor = 1 / factor

                connection.weight = (connection.weight + offset) * factor

    def to_shader(self) -> List[str]:
        """Generate the fragment shader body, one statement per node.

        Several connections on the same slot are summed. Returns an empty list
        if the genome has no topological order.
        """
        order = self.topological_order()
        if order is None:
            return []

        lines = []
        for node_index in order:
            node = self.nodes[node_index]

            terms: List[List[str]] = [[] for _ in node.input_types]
            for connection in self.connections:
                if connection.target == node_index:
                    terms[connection.slot].append(f"_{connection.source}*{connection.weight:.10f}")

            operands = ['+'.join(slot_terms) for slot_terms in terms]
            lines.append(f"{node.output_type} _{node_index}={node.render(operands)};")

        return lines

    def get_complexity(self) -> int:
        """Number of enabled connections"""
        return sum(1 for connection in self.connections if connection.enabled)

    def copy(self) -> 'Genome':
        """Create a copy with its own connection genes; nodes are shared"""
        new_genome = Genome(self.nodes, [connection.copy() for connection in self.connections])
        new_genome.fitness = self.fitness
        new_genome.was_evaluated = self.was_evaluated
        return new_genome

    def to_dict(self) -> Dict[str, Any]:
        """Serialize genome to dictionary"""
        return {
            'genome_id': self.genome_id,
            'nodes': [node.to_dict() for node in self.nodes],
            'connections': [connection.to_dict() for connection in self.connections],
            'fitness': self.fitness,
            'was_evaluated': self.was_evaluated
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Genome':
        """Deserialize genome from dictionary"""
        genome = cls([node_from_dict(node_data) for node_data in data['nodes']],
                     [ConnectionGene.from_dict(gene) for gene in data['connections']])
        genome.genome_id = data.get('genome_id', genome.genome_id)
        genome.fitness = data.get('fitness', 0.0)
        genome.was_evaluated = data.get('was_evaluated', False)
        return genome

    def to_json(self, filename: str = None) -> str:
        """Serialize to JSON string or file"""
        json_str = json.dumps(self.to_dict(), indent=2)
        if filename:
            with open(filename, 'w') as f:
                f.write(json_str)
        return json_str

    @classmethod
    def from_json(cls, json_data: str = None, filename: str = None) -> 'Genome':
        """Deserialize from JSON string or file"""
        if filename:
            with open(filename, 'r') as f:
                json_data = f.read()

        data = json.loads(json_data)
        return cls.from_dict(data)

    def __str__(self) -> str:
        lines = [f"Genome {self.genome_id[:8]}:"]
        lines.append(f"  Fitness: {self.fitness:.4f} (evaluated: {self.was_evaluated})")
        lines.append(f"  Nodes: {len(self.nodes)}, Connections: {len(self.connections)} "
                     f"({self.get_complexity()} enabled)")
        for line in self.to_shader():
            lines.append(f"  {line}")
        return '\n'.join(lines)
