"""
shader_evolution/nodes.py - Typed shader expression nodes
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Sequence, Tuple


class Node(ABC):
    """Base class for all shader AST nodes

    A node consumes one expression per input slot and produces a single value
    of ``output_type``. Nodes are immutable once built, so genomes may share
    them.
    """

    def __init__(self, output_type: str, input_types: Sequence[str] = ()):
        self._output_type = output_type
        self._input_types = tuple(input_types)

    @property
    def output_type(self) -> str:
        return self._output_type

    @property
    def input_types(self) -> Tuple[str, ...]:
        return self._input_types

    @property
    def arity(self) -> int:
        return len(self._input_types)

    @abstractmethod
    def render(self, operands: Sequence[str]) -> str:
        """Build the expression from one operand expression per input slot"""
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary"""
        pass

    def __eq__(self, other):
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash((type(self).__name__, self._output_type, self._input_types))

    def __repr__(self):
        return f"{type(self).__name__}({self.to_dict()})"


class InputNode(Node):
    """Constant or uniform read by the shader"""

    def __init__(self, text: str, output_type: str):
        super().__init__(output_type)
        self.text = text

    def render(self, operands: Sequence[str]) -> str:
        return self.text

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'InputNode', 'text': self.text, 'output_type': self.output_type}


class OutputNode(Node):
    """Final variable of the shader"""

    def __init__(self, value_type: str):
        super().__init__(value_type, [value_type])

    def render(self, operands: Sequence[str]) -> str:
        return operands[0]

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'OutputNode', 'value_type': self.output_type}


class MemberNode(Node):
    """Member access with dot notation, e.g. swizzles"""

    def __init__(self, name: str, output_type: str, input_type: str):
        super().__init__(output_type, [input_type])
        self.name = name

    def render(self, operands: Sequence[str]) -> str:
        return f"({operands[0]}).{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'MemberNode', 'name': self.name,
                'output_type': self.output_type, 'input_type': self.input_types[0]}


class BinaryOperatorNode(Node):
    """Binary operator with infix notation"""

    def __init__(self, operator: str, output_type: str, input_types: Sequence[str]):
        if len(input_types) != 2:
            raise ValueError(f"Binary operator '{operator}' needs 2 operand types, got {len(input_types)}")
        super().__init__(output_type, input_types)
        self.operator = operator

    def render(self, operands: Sequence[str]) -> str:
        return f"({operands[0]}){self.operator}({operands[1]})"

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'BinaryOperatorNode', 'operator': self.operator,
                'output_type': self.output_type, 'input_types': list(self.input_types)}


class UnaryOperatorNode(Node):
    """Unary operator with prefix notation"""

    def __init__(self, operator: str, output_type: str, input_type: str):
        super().__init__(output_type, [input_type])
        self.operator = operator

    def render(self, operands: Sequence[str]) -> str:
        return f"({self.operator}({operands[0]}))"

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'UnaryOperatorNode', 'operator': self.operator,
                'output_type': self.output_type, 'input_type': self.input_types[0]}


class FunctionCallNode(Node):
    """Function call, also used for constructors such as vec3(...)"""

    def __init__(self, name: str, output_type: str, input_types: Sequence[str]):
        super().__init__(output_type, input_types)
        self.name = name

    def render(self, operands: Sequence[str]) -> str:
        return f"{self.name}({','.join(operands)})"

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'FunctionCallNode', 'name': self.name,
                'output_type': self.output_type, 'input_types': list(self.input_types)}


class ArrayAccessNode(Node):
    """Indexed component access"""

    def __init__(self, index: int, output_type: str, input_type: str):
        super().__init__(output_type, [input_type])
        self.index = index

    def render(self, operands: Sequence[str]) -> str:
        return f"({operands[0]})[{self.index}]"

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'ArrayAccessNode', 'index': self.index,
                'output_type': self.output_type, 'input_type': self.input_types[0]}


# Node creation helpers
def node_from_dict(data: Dict[str, Any]) -> Node:
    """Create node from dictionary representation"""
    node_type = data['type']

    if node_type == 'InputNode':
        return InputNode(data['text'], data['output_type'])
    elif node_type == 'OutputNode':
        return OutputNode(data['value_type'])
    elif node_type == 'MemberNode':
        return MemberNode(data['name'], data['output_type'], data['input_type'])
    elif node_type == 'BinaryOperatorNode':
        return BinaryOperatorNode(data['operator'], data['output_type'], data['input_types'])
    elif node_type == 'UnaryOperatorNode':
        return UnaryOperatorNode(data['operator'], data['output_type'], data['input_type'])
    elif node_type == 'FunctionCallNode':
        return FunctionCallNode(data['name'], data['output_type'], data['input_types'])
    elif node_type == 'ArrayAccessNode':
        return ArrayAccessNode(data['index'], data['output_type'], data['input_type'])
    else:
        raise ValueError(f"Unknown node type: {node_type}")
