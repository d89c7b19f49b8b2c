"""Tests for rendering the registration module."""

from __future__ import annotations

from pathlib import Path

from handlergen.models import CommandHandler, ImportSet, QueryHandler, RegistrationEntry
from handlergen.synthesizer import FRAMEWORK_IMPORTS, RegistrationSynthesizer, contains_marker

EXPECTED_MODULE = """\
 // *** GENERATED ***
using VContainer;
using Mediator.Interfaces;
using System;
using Game.Messages;

namespace Game.Generated
{
    public static class VContainerCustomMediatorRegistration
    {
        public static void RegisterMediatorHandlers(this IContainerBuilder builder)
        {
           builder
              .Register<Ping.PingHandler>(Lifetime.Transient)
              .As(typeof(IQueryHandler<Ping, Pong>));
           builder
              .Register<Save.SaveHandler>(Lifetime.Transient)
              .As(typeof(ICommandHandler<Save>));

        }
    }
}
"""

EXPECTED_EMPTY_MODULE = """\
 // *** GENERATED ***
using VContainer;
using Mediator.Interfaces;


namespace Game.Generated
{
    public static class VContainerCustomMediatorRegistration
    {
        public static void RegisterMediatorHandlers(this IContainerBuilder builder)
        {

        }
    }
}
"""


def _entries() -> list[RegistrationEntry]:
    return [
        RegistrationEntry(
            handler_name="PingHandler",
            handler_type="Ping.PingHandler",
            classification=QueryHandler(query_type="Ping", result_type="Pong"),
        ),
        RegistrationEntry(
            handler_name="SaveHandler",
            handler_type="Save.SaveHandler",
            classification=CommandHandler(command_type="Save"),
        ),
    ]


def test_render_emits_one_registration_per_entry() -> None:
    imports = ImportSet(["using System;", "using VContainer;", "using Game.Messages;"])

    module = RegistrationSynthesizer("Game.Generated").render(_entries(), imports)

    assert module.text == EXPECTED_MODULE
    assert module.namespace == "Game.Generated"
    assert list(module.imports) == ["using System;", "using Game.Messages;"]
    assert len(module.entries) == 2
    assert contains_marker(module.text)


def test_render_without_entries_keeps_module_shape() -> None:
    module = RegistrationSynthesizer("Game.Generated").render([], ImportSet())

    assert module.text == EXPECTED_EMPTY_MODULE
    assert module.entries == ()


def test_framework_imports_are_never_duplicated() -> None:
    imports = ImportSet(FRAMEWORK_IMPORTS)

    module = RegistrationSynthesizer("Game.Generated").render(_entries(), imports)

    for directive in FRAMEWORK_IMPORTS:
        assert module.text.count(directive) == 1


def test_templates_dir_overrides_builtin_template(tmp_path: Path) -> None:
    (tmp_path / "registrations.cs.j2").write_text(
        "namespace {{ namespace }} { /* {{ entries | length }} */ }\n",
        encoding="utf-8",
    )

    module = RegistrationSynthesizer("Game.Generated", templates_dir=tmp_path).render(_entries(), ImportSet())

    assert module.text == "namespace Game.Generated { /* 2 */ }\n"
    assert not contains_marker(module.text)
