"""Render the VContainer registration module from classified handlers."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .models import GeneratedModule, ImportSet, RegistrationEntry

FRAMEWORK_IMPORTS = ("using VContainer;", "using Mediator.Interfaces;")
REGISTRATION_CLASS = "VContainerCustomMediatorRegistration"
REGISTRATION_METHOD = "RegisterMediatorHandlers"
GENERATED_CLASS_MARKER = f"public static class {REGISTRATION_CLASS}"

_TEMPLATE_NAME = "registrations.cs.j2"


class RegistrationSynthesizer:
    """Renders one registration statement per entry inside the target namespace."""

    def __init__(self, namespace: str, templates_dir: Path | None = None) -> None:
        self.namespace = namespace
        self._env = self._create_env(templates_dir)

    def render(self, entries: Sequence[RegistrationEntry], imports: ImportSet) -> GeneratedModule:
        collected = imports.without(FRAMEWORK_IMPORTS)
        template = self._env.get_template(_TEMPLATE_NAME)
        text = template.render(
            framework_imports=FRAMEWORK_IMPORTS,
            imports=list(collected),
            namespace=self.namespace,
            class_name=REGISTRATION_CLASS,
            method_name=REGISTRATION_METHOD,
            entries=entries,
        )
        return GeneratedModule(
            namespace=self.namespace,
            imports=collected,
            entries=tuple(entries),
            text=text,
        )

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        directories: list[str] = []
        if templates_dir:
            directories.append(str(templates_dir))
        directories.append(str(Path(__file__).with_name("templates")))
        loader = FileSystemLoader(directories)
        return Environment(
            loader=loader,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )


def contains_marker(text: str) -> bool:
    return GENERATED_CLASS_MARKER in text


__all__ = [
    "FRAMEWORK_IMPORTS",
    "GENERATED_CLASS_MARKER",
    "REGISTRATION_CLASS",
    "REGISTRATION_METHOD",
    "RegistrationSynthesizer",
    "contains_marker",
]
