"""Syntax, semantic and classification analyzers for C# handler discovery."""

from __future__ import annotations

from .classifier import ContractSet, HandlerClassifier, registration_entries
from .imports import collect_imports
from .semantic import ReferenceLibrary, SemanticEnvironment
from .syntax import SyntaxIngestor

__all__ = [
    "ContractSet",
    "HandlerClassifier",
    "ReferenceLibrary",
    "SemanticEnvironment",
    "SyntaxIngestor",
    "collect_imports",
    "registration_entries",
]
