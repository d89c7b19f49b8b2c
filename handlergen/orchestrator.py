"""Pipeline orchestration for handlergen runs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .analyzers.classifier import ContractSet, HandlerClassifier, registration_entries
from .analyzers.imports import collect_imports
from .analyzers.semantic import ReferenceLibrary, SemanticEnvironment
from .analyzers.syntax import SyntaxIngestor
from .config import CONFIG_FILENAME, HandlerGenConfig, load_config
from .logging import get_logger
from .models import GeneratedModule, SourceFile
from .source_scanner import SourceScanner
from .synthesizer import GENERATED_CLASS_MARKER, RegistrationSynthesizer, contains_marker


class GenerationError(RuntimeError):
    """Raised when the rendered module cannot be produced as expected."""


@dataclass
class GenerationResult:
    """Outcome of a generation run."""

    module: GeneratedModule
    path: Path
    written: bool


class Orchestrator:
    """Coordinates scanning, analysis, synthesis and the output write."""

    def __init__(
        self,
        *,
        ingestor: SyntaxIngestor | None = None,
        scanner: SourceScanner | None = None,
    ) -> None:
        self.ingestor = ingestor or SyntaxIngestor()
        self._scanner = scanner
        self.logger = get_logger("orchestrator")

    def generate(
        self,
        sources: Sequence[SourceFile],
        namespace: str,
        config: HandlerGenConfig | None = None,
    ) -> GeneratedModule:
        """Run the in-memory pipeline over already-read sources."""
        config = config or HandlerGenConfig(root=Path.cwd())

        units = self.ingestor.parse_all(sources)
        degraded = [unit.path for unit in units if unit.has_errors]
        if degraded:
            self.logger.debug("%d files parsed with syntax errors: %s", len(degraded), ", ".join(degraded))

        references = ReferenceLibrary.for_contracts(config.contracts.query, config.contracts.command)
        environment = SemanticEnvironment.build(units, references)
        contracts = ContractSet.bind(environment, config.contracts.query, config.contracts.command)
        classifier = HandlerClassifier(environment, contracts)

        matched = registration_entries(environment.candidates(), classifier)
        self.logger.debug("Classified %d handler classes", len(matched))

        contributing = []
        for candidate, _entry in matched:
            if candidate.symbol is not None:
                contributing.extend(environment.declaring_units(candidate.symbol))
        imports = collect_imports(contributing)

        synthesizer = RegistrationSynthesizer(namespace, config.output.templates_dir)
        return synthesizer.render([entry for _candidate, entry in matched], imports)

    def run(
        self,
        input_path: str | Path,
        output_path: str | Path,
        namespace: str,
        *,
        config_path: Optional[Path] = None,
        dry_run: bool = False,
    ) -> GenerationResult:
        """Generate the registration module for ``input_path`` into ``output_path``."""
        input_dir = Path(input_path).expanduser().resolve()
        output_dir = Path(output_path).expanduser().resolve()
        self.logger.info("Starting generation for %s (namespace=%s)", input_dir, namespace)

        config = load_config(config_path or input_dir / CONFIG_FILENAME)
        output_file = output_dir / config.output.file_name

        if output_file.exists() and not dry_run:
            self.logger.debug("Removing previous output %s", output_file)
            output_file.unlink()

        scanner = self._scanner or SourceScanner(config.sources.extensions, config.exclude_paths)
        sources = scanner.scan(input_dir, skip=[output_file])
        self.logger.debug("Scanner discovered %d source files", len(sources))

        module = self.generate(sources, namespace, config)
        if not contains_marker(module.text):
            raise GenerationError(
                f"Rendered module does not declare '{GENERATED_CLASS_MARKER}'; nothing was written"
            )
        if not module.entries:
            self.logger.warning("No query or command handlers found under %s", input_dir)

        if dry_run:
            return GenerationResult(module=module, path=output_file, written=False)

        if not output_dir.is_dir():
            raise NotADirectoryError(f"Output folder not found: {output_dir}")
        output_file.write_text(module.text, encoding="utf-8", newline="\n")
        self.logger.info("Wrote %d registrations to %s", len(module.entries), output_file)
        return GenerationResult(module=module, path=output_file, written=True)


__all__ = ["GenerationError", "GenerationResult", "Orchestrator"]
