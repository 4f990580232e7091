from conftest import ScriptedGateway
from learnpath.core.errors import UpstreamUnavailable
from learnpath.services.prerequisites import (
    NO_PREREQUISITES,
    PREREQUISITES_UNAVAILABLE,
    PrerequisiteResolver,
    build_prerequisite_prompt,
    parse_prerequisite_list,
)


def test_parse_strips_numbering_and_blank_lines():
    assert parse_prerequisite_list("1. Data Types\n2. Set Theory\n\n3. Logic") == ["Data Types", "Set Theory", "Logic"]


def test_parse_handles_unpunctuated_numbers_and_padding():
    text = "  1 Variables  \n2.Loops\r\n\n   \n10. Functions"
    assert parse_prerequisite_list(text) == ["Variables", "Loops", "Functions"]


def test_prompt_names_topic_and_bounds():
    prompt = build_prerequisite_prompt("Databases")
    assert '"Databases"' in prompt
    assert "fewer than 4 or more than 7" in prompt


async def test_resolve_returns_parsed_list():
    gateway = ScriptedGateway(["1. Data Types\n2. Set Theory\n\n3. Logic"])
    assert await PrerequisiteResolver(gateway).resolve("Databases") == ["Data Types", "Set Theory", "Logic"]
    assert len(gateway.calls) == 1


async def test_resolve_empty_response_gives_placeholder():
    gateway = ScriptedGateway(["\n  \n"])
    assert await PrerequisiteResolver(gateway).resolve("Databases") == [NO_PREREQUISITES]


async def test_resolve_upstream_failure_gives_placeholder_without_retry():
    gateway = ScriptedGateway([UpstreamUnavailable("connection reset")])
    result = await PrerequisiteResolver(gateway).resolve("Databases")
    assert result == [PREREQUISITES_UNAVAILABLE]
    assert "Unable to generate prerequisites" in result[0]
    assert len(gateway.calls) == 1
