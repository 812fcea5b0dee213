"""Tests for platform rule evaluation."""

import pytest

from craftboot.versions.models import Rule, VersionLibrary, parse_argument
from craftboot.core.game_launcher import expand_templates
from craftboot.versions.rules import Environment, evaluate


def rules(*raw):
    return [Rule.model_validate(r) for r in raw]


def test_no_rules_allow(linux):
    assert evaluate(None, linux) is True
    assert evaluate([], linux) is True


def test_no_matching_rule_denies(linux):
    assert evaluate(rules({"action": "allow", "os": {"name": "windows"}}), linux) is False


def test_last_matching_rule_wins(linux):
    assert evaluate(rules(
        {"action": "allow"},
        {"action": "disallow", "os": {"name": "linux"}},
    ), linux) is False
    assert evaluate(rules(
        {"action": "disallow", "os": {"name": "linux"}},
        {"action": "allow"},
    ), linux) is True


def test_wildcard_os_name_is_a_literal(linux):
    """A deny for the host followed by an allow for "*" still denies."""
    assert evaluate(rules(
        {"action": "deny", "os": {"name": "linux"}},
        {"action": "allow", "os": {"name": "*"}},
    ), linux) is False


def test_deny_is_an_alias_of_disallow():
    assert Rule.model_validate({"action": "deny"}) == Rule.model_validate({"action": "disallow"})


def test_arch_and_version_filters():
    env = Environment(os_name="windows", arch="x86", os_version="10.0.19045")
    assert evaluate(rules({"action": "allow", "os": {"arch": "x86"}}), env) is True
    assert evaluate(rules({"action": "allow", "os": {"arch": "x86_64"}}), env) is False
    assert evaluate(rules({"action": "allow", "os": {"name": "windows", "version": "^10\\."}}), env) is True
    assert evaluate(rules({"action": "allow", "os": {"version": "^6\\."}}), env) is False


def test_unknown_os_never_matches():
    env = Environment(os_name="freebsd", arch="x86_64")
    assert evaluate(rules({"action": "allow", "os": {"name": "linux"}}), env) is False
    assert evaluate(rules({"action": "disallow", "os": {"name": "osx"}}), env) is False


def test_features_default_to_false(linux):
    demo = rules({"action": "allow", "features": {"is_demo_user": True}})
    assert evaluate(demo, linux) is False
    assert evaluate(demo, Environment("linux", "x86_64", features={"is_demo_user": True})) is True
    assert evaluate(rules({"action": "allow", "features": {"is_demo_user": False}}), linux) is True


def test_evaluation_is_deterministic(linux):
    rule_list = rules(
        {"action": "allow"},
        {"action": "disallow", "os": {"name": "osx"}},
    )
    assert {evaluate(rule_list, linux) for _ in range(20)} == {True}


@pytest.mark.parametrize("raw_rules", [
    [],
    [{"action": "allow", "os": {"name": "linux"}}],
    [{"action": "allow", "os": {"name": "osx"}}],
    [{"action": "allow"}, {"action": "disallow", "os": {"name": "linux"}}],
    [{"action": "allow", "features": {"has_custom_resolution": True}}],
])
def test_libraries_and_arguments_agree(raw_rules, linux):
    """The same rules give the same verdict whether they guard a library or an argument."""
    library = VersionLibrary.model_validate({"name": "a:b:1", "rules": raw_rules or None})
    argument = parse_argument({"rules": raw_rules, "value": "--flag"})
    library_allowed = evaluate(library.rules, linux)
    argument_allowed = list(expand_templates([argument], linux)) == ["--flag"]
    assert library_allowed == argument_allowed
