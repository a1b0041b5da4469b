"""
shader_evolution/cli.py - Command-line interface
"""
import os
import sys
from typing import Optional

import click
from loguru import logger

from .archive import EvolutionArchive
from .config import EvolutionConfig
from .engine import EvolutionEngine
from .exceptions import BreedingExhaustedError, ConfigurationError
from .genome import Genome
from .glsl import default_templates, fragment_shader, seed_genome


def setup_logger(log_dir: Optional[str] = None, verbose: bool = False) -> None:
    """Send warnings to stderr (everything with --verbose) and a full log to log_dir"""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING",
               format="<level>{level: <8}</level> | {message}")

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        logger.add(os.path.join(log_dir, "breeding.log"), level="DEBUG",
                   format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
                   encoding="utf-8")


@click.group()
def cli():
    """Shader Evolution - Breed fragment shaders by ranking them"""
    pass


@cli.command()
@click.option('--population', '-p', type=int, default=None, help='Population size (overrides --config)')
@click.option('--generations', '-g', default=10, help='Maximum number of generations')
@click.option('--seed', type=int, default=None, help='Random seed')
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='JSON file of evolution coefficients')
@click.option('--out', '-o', default='out/', help='Output directory')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
def breed(population, generations, seed, config_path, out, verbose):
    """Interactively rank shaders and evolve them"""
    setup_logger(os.path.join(out, "logs"), verbose)

    try:
        config = EvolutionConfig.from_json(config_path) if config_path else EvolutionConfig()
        if population is not None:
            config.population_size = population
        engine = EvolutionEngine(default_templates(), config, seed=seed)
    except ConfigurationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    engine.add_genome(seed_genome())
    archive = EvolutionArchive(os.path.join(out, "archive"))

    click.echo(f"Breeding up to {generations} generations, population {config.population_size}")
    click.echo("Score each shader with a number, leave blank to skip, 'q' to stop.")

    stop = False
    for _ in range(generations):
        candidates = list(engine.population or engine.backlog)
        if not candidates:
            click.echo("Nothing left to rank.")
            break

        click.echo(f"\n=== Generation {engine.generation} ===")
        for i, genome in enumerate(candidates):
            click.echo(f"\n#{i}")
            for line in genome.to_shader():
                click.echo(f"  {line}")

            answer = click.prompt(f"Score for #{i}", default='', show_default=False).strip()
            if answer.lower() == 'q':
                stop = True
                break
            if not answer:
                continue
            try:
                fitness = float(answer)
            except ValueError:
                click.echo(f"Not a number: {answer!r}, skipped")
                continue
            engine.add_ranking(genome, fitness)

        if stop:
            break

        try:
            engine.evolve()
        except BreedingExhaustedError as e:
            click.echo(f"Breeding stopped: {e}")
            break

        archive.archive_generation(engine)
        if not engine.population:
            click.echo("No shader resembles a ranked one yet, rank some of the awaiting shaders.")

        if verbose:
            stats = engine.get_stats()
            click.echo(f"Species: {stats['species']}, awaiting rankings: {stats['backlog_size']}")

    if archive.evolution_log:
        archive.export_summary_report()
        click.echo(f"\nSummary report saved to {os.path.join(archive.base_path, 'evolution_summary.txt')}")


@cli.command()
@click.option('--genome', '-g', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Path to genome JSON file')
@click.option('--fragment', is_flag=True, help='Print a complete fragment shader')
def show(genome, fragment):
    """Print the shader code of a saved genome"""
    try:
        g = Genome.from_json(filename=genome)
    except (ValueError, KeyError) as e:
        raise click.ClickException(f"Error loading genome: {e}") from e

    if not g.is_valid():
        raise click.ClickException(f"Genome {genome} is not a valid acyclic typed graph")

    if fragment:
        try:
            click.echo(fragment_shader(g), nl=False)
        except ValueError as e:
            raise click.ClickException(str(e)) from e
    else:
        for line in g.to_shader():
            click.echo(line)


@cli.command()
@click.option('--archive', '-a', default='out/archive', help='Archive directory path')
def analyze(archive):
    """Analyze evolution results from archive"""
    if not os.path.isdir(archive):
        raise click.ClickException(f"No archive found at {archive}")

    arch = EvolutionArchive(archive)
    if not arch.load_evolution_log():
        click.echo(f"No evolution log found in {archive}")
        return

    click.echo(arch.export_summary_report())

    stats = arch.get_archive_stats()
    click.echo("\nArchive Statistics:")
    click.echo(f"Total files: {stats['disk_files']}")
    click.echo(f"Rankings: {stats['ranking_files']}")
    click.echo(f"Archive size: {stats['archive_size_mb']:.1f} MB")


if __name__ == '__main__':
    cli()
