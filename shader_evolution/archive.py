"""
shader_evolution/archive.py - Evolution archive and persistence
"""
import os
import json
import time
from typing import Dict, Any, List, Optional
from datetime import datetime

from loguru import logger

from .engine import EvolutionEngine
from .genome import Genome
from .glsl import fragment_shader


class EvolutionArchive:
    """Archive evolution runs: genomes, their shaders, rankings and statistics"""

    def __init__(self, base_path: str):
        self.base_path = base_path
        self.evolution_log = []
        # Rankings of the archived engine already saved by this instance
        self._rankings_written = 0

        # Create directory structure
        self.dirs = {
            'genomes': os.path.join(base_path, 'genomes'),
            'shaders': os.path.join(base_path, 'shaders'),
            'rankings': os.path.join(base_path, 'rankings'),
            'logs': os.path.join(base_path, 'logs'),
            'stats': os.path.join(base_path, 'stats')
        }

        for dir_path in self.dirs.values():
            os.makedirs(dir_path, exist_ok=True)

    def save_genome(self, genome: Genome, name: str, directory: str = 'genomes') -> str:
        """Write the genome as JSON, and its fragment shader when it has an output"""
        filename = f"{name}.json"
        genome.to_json(os.path.join(self.dirs[directory], filename))

        try:
            shader = fragment_shader(genome)
        except ValueError as e:
            logger.debug(f"No shader written for {name}: {e}")
        else:
            with open(os.path.join(self.dirs['shaders'], f"{name}.frag"), 'w') as f:
                f.write(shader)

        return filename

    def archive_generation(self, engine: EvolutionEngine, stats: Dict[str, Any] = None,
                           best: int = 5) -> Dict[str, Any]:
        """Archive the current generation's data"""
        timestamp = time.time()
        generation = engine.generation
        stats = stats if stats is not None else engine.get_stats()

        genome_files = []
        for i, genome in enumerate(engine.get_best(best)):
            genome_files.append(self.save_genome(genome, f"gen_{generation:04d}_rank_{i+1:02d}"))

        # A fresh log means a new run: snapshots left by an earlier run are stale
        if not self.evolution_log:
            self._remove_ranking_snapshots()

        # Rankings are append-only, only those not yet written by this archive
        for i in range(self._rankings_written, len(engine.rankings)):
            ranking = engine.rankings[i]
            snapshot = ranking.genome.copy()
            snapshot.fitness = ranking.fitness
            self.save_genome(snapshot, f"ranking_{i:04d}", directory='rankings')
        self._rankings_written = len(engine.rankings)
        ranking_files = [f"ranking_{i:04d}.json" for i in range(len(engine.rankings))]

        generation_data = {
            'generation': generation,
            'timestamp': timestamp,
            'datetime': datetime.fromtimestamp(timestamp).isoformat(),
            'stats': stats,
            'best_genomes': genome_files,
            'rankings': ranking_files
        }

        self.evolution_log.append(generation_data)

        log_file = os.path.join(self.dirs['logs'], 'evolution_log.json')
        with open(log_file, 'w') as f:
            json.dump(self.evolution_log, f, indent=2)

        stats_file = os.path.join(self.dirs['stats'], f'gen_{generation:04d}_stats.json')
        with open(stats_file, 'w') as f:
            json.dump(generation_data, f, indent=2)

        logger.info(f"Archived generation {generation} to {self.base_path}")
        return generation_data

    def load_evolution_log(self) -> List[Dict[str, Any]]:
        """Reload the evolution log written by a previous run"""
        log_file = os.path.join(self.dirs['logs'], 'evolution_log.json')
        if os.path.exists(log_file):
            with open(log_file, 'r') as f:
                self.evolution_log = json.load(f)
        return self.evolution_log

    def _remove_ranking_snapshots(self) -> None:
        for directory in ('rankings', 'shaders'):
            for file in os.listdir(self.dirs[directory]):
                if file.startswith('ranking_'):
                    os.remove(os.path.join(self.dirs[directory], file))

    def export_summary_report(self) -> str:
        """Write evolution_summary.txt and return its text"""
        if not self.evolution_log:
            return "No evolution data to summarize"

        last = self.evolution_log[-1]
        last_stats = last['stats']
        lines = [
            "EVOLUTION SUMMARY REPORT",
            "",
            f"Generations archived: {len(self.evolution_log)} (last: {last['generation']})",
            f"Rankings: {last_stats.get('rankings', 0)}",
            f"Awaiting rankings: {last_stats.get('backlog_size', 0)}",
            "",
            "generation  species  population  best fitness  mean nodes",
        ]

        for entry in self.evolution_log[-10:]:
            stats = entry['stats']
            best_fitness = stats.get('fitness', {}).get('max', float('nan'))
            mean_nodes = stats.get('complexity', {}).get('nodes_mean', float('nan'))
            lines.append(f"{entry['generation']:>10}  {stats.get('species', 0):>7}  "
                         f"{stats.get('population_size', 0):>10}  {best_fitness:>12.4f}  "
                         f"{mean_nodes:>10.1f}")

        lines.append("")
        for rank, filename in enumerate(last.get('best_genomes', [])[:3], 1):
            genome = self.load_genome(filename)
            if genome is None:
                lines.append(f"#{rank}: {filename} (missing)")
            else:
                lines.append(f"#{rank}: {filename}, fitness {genome.fitness:.4f}, "
                             f"{len(genome.to_shader())} statements")

        report_text = "\n".join(lines)
        with open(os.path.join(self.base_path, 'evolution_summary.txt'), 'w') as f:
            f.write(report_text)
        return report_text

    def get_archive_stats(self) -> Dict[str, Any]:
        """Count the files in each archive directory and their total size"""
        counts = {}
        total_size = 0
        for name, dir_path in self.dirs.items():
            paths = [os.path.join(dir_path, file) for file in os.listdir(dir_path)]
            paths = [path for path in paths if os.path.isfile(path)]
            counts[name] = len(paths)
            total_size += sum(os.path.getsize(path) for path in paths)

        return {
            'genome_files': counts['genomes'],
            'shader_files': counts['shaders'],
            'ranking_files': counts['rankings'],
            'disk_files': sum(counts.values()),
            'archive_size_mb': total_size / (1024 * 1024)
        }

    def list_archived_genomes(self) -> List[str]:
        """List all archived genome files"""
        genomes_dir = self.dirs['genomes']
        return sorted(os.path.join(genomes_dir, file)
                      for file in os.listdir(genomes_dir) if file.endswith('.json'))

    def load_genome(self, filename: str) -> Optional[Genome]:
        """Load a specific archived genome, None if the file does not exist"""
        if not os.path.isabs(filename):
            filename = os.path.join(self.dirs['genomes'], filename)

        if not os.path.exists(filename):
            return None
        return Genome.from_json(filename=filename)
