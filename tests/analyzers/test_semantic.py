"""Tests for the semantic environment and type resolution."""

from __future__ import annotations

from handlergen.analyzers.semantic import (
    ErrorType,
    NamedType,
    ReferenceLibrary,
    ReferenceType,
    SemanticEnvironment,
    TypeParameterType,
)
from tests._fixtures.source_builder import build_environment, parse_units


def _declaration(environment: SemanticEnvironment, name: str):
    for candidate in environment.candidates():
        if candidate.name == name:
            return candidate
    raise AssertionError(f"No candidate named {name}")


def test_reference_library_supplies_contract_symbols() -> None:
    environment = build_environment({"Empty.cs": "public class Unrelated { }\n"})

    query = environment.lookup("Mediator.Interfaces.QueryHandler", 2)
    command = environment.lookup("Mediator.Interfaces.ICommandHandler", 1)

    assert query is not None and query.is_reference
    assert command is not None and command.arity == 1
    assert environment.lookup("Mediator.Interfaces.QueryHandler", 1) is None


def test_source_declaration_replaces_reference_symbol() -> None:
    environment = build_environment(
        {
            "Contracts.cs": """
            namespace Mediator.Interfaces
            {
                public interface IQueryHandler<TQuery, TResult>
                {
                }
            }
            """,
        }
    )

    symbol = environment.lookup("Mediator.Interfaces.IQueryHandler", 2)

    assert symbol is not None
    assert symbol.is_reference is False
    assert symbol.kind == "interface"
    assert symbol.type_parameters == ("TQuery", "TResult")


def test_base_type_resolves_through_using_directive() -> None:
    environment = build_environment(
        {
            "Ping.cs": """
            using Mediator.Interfaces;

            public class Ping
            {
                public class PingHandler : QueryHandler<Ping, Pong>
                {
                }
            }

            public class Pong
            {
            }
            """,
        }
    )

    candidate = _declaration(environment, "PingHandler")
    assert candidate.symbol is not None
    assert candidate.symbol.qualified_name == "Ping.PingHandler"

    chain = list(environment.base_chain(candidate.symbol))

    assert len(chain) == 1
    assert chain[0].symbol.qualified_name == "Mediator.Interfaces.QueryHandler"
    assert [argument.display() for argument in chain[0].type_arguments] == ["Ping", "Pong"]


def test_base_chain_substitutes_type_arguments_through_generic_bases() -> None:
    environment = build_environment(
        {
            "Bases.cs": """
            using Mediator.Interfaces;

            namespace App.Handlers
            {
                public abstract class LoggingQueryHandler<TQuery, TResult> : QueryHandler<TQuery, TResult>
                {
                }

                public abstract class StringQueryHandler<TRequest> : LoggingQueryHandler<TRequest, string>
                {
                }
            }
            """,
            "Lookup.cs": """
            namespace App.Handlers
            {
                public class Lookup
                {
                    public class LookupHandler : StringQueryHandler<Lookup>
                    {
                    }
                }
            }
            """,
        }
    )

    candidate = _declaration(environment, "LookupHandler")
    chain = list(environment.base_chain(candidate.symbol))

    assert [base.display() for base in chain] == [
        "App.Handlers.StringQueryHandler<App.Handlers.Lookup>",
        "App.Handlers.LoggingQueryHandler<App.Handlers.Lookup, string>",
        "Mediator.Interfaces.QueryHandler<App.Handlers.Lookup, string>",
    ]


def test_outer_namespace_and_imported_namespace_lookup() -> None:
    environment = build_environment(
        {
            "Messages.cs": """
            namespace App.Messages
            {
                public class Pong
                {
                }
            }
            """,
            "Ping.cs": """
            namespace App
            {
                public class Ping
                {
                }
            }
            """,
            "Handler.cs": """
            using App.Messages;

            namespace App.Queries
            {
                public class PingHandler : Mediator.Interfaces.QueryHandler<Ping, Pong>
                {
                }
            }
            """,
        }
    )

    candidate = _declaration(environment, "PingHandler")
    (base,) = list(environment.base_chain(candidate.symbol))

    assert base.display() == "Mediator.Interfaces.QueryHandler<App.Ping, App.Messages.Pong>"


def test_unresolved_names_render_as_written() -> None:
    environment = build_environment(
        {
            "Handler.cs": """
            using Mediator.Interfaces;

            public class Report
            {
                public class ReportHandler : QueryHandler<Report, List<string>>
                {
                }
            }
            """,
        }
    )

    candidate = _declaration(environment, "ReportHandler")
    (base,) = list(environment.base_chain(candidate.symbol))

    assert isinstance(base.type_arguments[1], ErrorType)
    assert base.type_arguments[1].display() == "List<string>"


def test_unresolved_base_ends_the_chain() -> None:
    environment = build_environment(
        {
            "Player.cs": """
            public class Player : MonoBehaviour
            {
            }
            """,
        }
    )

    candidate = _declaration(environment, "Player")

    assert list(environment.base_chain(candidate.symbol)) == []


def test_alias_prefix_resolves_qualified_base() -> None:
    environment = build_environment(
        {
            "Save.cs": """
            using Contracts = Mediator.Interfaces;

            public class Save
            {
                public class SaveHandler : Contracts.CommandHandler<Save>
                {
                }
            }
            """,
        }
    )

    candidate = _declaration(environment, "SaveHandler")
    (base,) = list(environment.base_chain(candidate.symbol))

    assert base.symbol.qualified_name == "Mediator.Interfaces.CommandHandler"
    assert base.display() == "Mediator.Interfaces.CommandHandler<Save>"


def test_wrong_arity_falls_back_to_same_named_definition() -> None:
    environment = build_environment(
        {
            "Bad.cs": """
            using Mediator.Interfaces;

            public class Bad : QueryHandler<Bad>
            {
            }
            """,
        }
    )

    candidate = _declaration(environment, "Bad")
    (base,) = list(environment.base_chain(candidate.symbol))

    assert base.symbol.qualified_name == "Mediator.Interfaces.QueryHandler"
    assert base.symbol.arity == 2
    assert len(base.type_arguments) == 1


def test_partial_declarations_merge_into_one_symbol() -> None:
    environment = build_environment(
        {
            "Ping.Part1.cs": """
            public partial class Ping
            {
                public partial class PingHandler
                {
                }
            }
            """,
            "Ping.Part2.cs": """
            using Mediator.Interfaces;

            public partial class Ping
            {
                public partial class PingHandler : QueryHandler<Ping, int>
                {
                }
            }
            """,
        }
    )

    names = [candidate.name for candidate in environment.candidates()]
    assert names == ["Ping", "PingHandler"]

    candidate = _declaration(environment, "PingHandler")
    assert candidate.unit.path == "Ping.Part1.cs"
    assert [unit.path for unit in environment.declaring_units(candidate.symbol)] == [
        "Ping.Part1.cs",
        "Ping.Part2.cs",
    ]
    (base,) = list(environment.base_chain(candidate.symbol))
    assert base.display() == "Mediator.Interfaces.QueryHandler<Ping, int>"


def test_duplicate_non_partial_declarations_are_unresolvable() -> None:
    environment = build_environment(
        {
            "A.cs": "public class Twin { }\n",
            "B.cs": "public class Twin { }\n",
        }
    )

    candidates = list(environment.candidates())

    assert len(candidates) == 2
    assert all(candidate.symbol is None for candidate in candidates)


def test_cyclic_bases_terminate() -> None:
    environment = build_environment(
        {
            "Cycle.cs": """
            public class A : B
            {
            }

            public class B : A
            {
            }
            """,
        }
    )

    candidate = _declaration(environment, "A")
    chain = list(environment.base_chain(candidate.symbol))

    assert [base.symbol.qualified_name for base in chain] == ["B", "A"]


def test_declared_type_uses_type_parameters() -> None:
    references = ReferenceLibrary([ReferenceType("Lib.Base", 1)])
    environment = SemanticEnvironment.build(
        parse_units({"Open.cs": "public class Open<T> : Lib.Base<T> { }\n"}),
        references,
    )

    (candidate,) = list(environment.candidates())
    declared = environment.declared_type(candidate.symbol)
    (base,) = list(environment.base_chain(candidate.symbol))

    assert declared.type_arguments == (TypeParameterType("T"),)
    assert isinstance(base, NamedType)
    assert base.display() == "Lib.Base<T>"
