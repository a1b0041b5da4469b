"""
shader_evolution/exceptions.py - Error types raised by the engine
"""


class ShaderEvolutionError(Exception):
    """Base for all shader_evolution exceptions."""

    pass


class EmptySelectorError(ShaderEvolutionError, LookupError):
    """Raised when drawing from a selector that holds no item."""

    pass


class ConfigurationError(ShaderEvolutionError, ValueError):
    """Invalid evolution configuration."""

    pass


class BreedingExhaustedError(ShaderEvolutionError):
    """Raised when the breeding loop exceeds its configured attempt bound."""

    pass
