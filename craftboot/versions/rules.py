"""Platform rule evaluation shared by library and argument filtering."""

import platform
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from .models import Rule, RuleAction

_OS_NAMES = {
    "windows": "windows",
    "linux": "linux",
    "darwin": "osx",
}

_ARCH_NAMES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm32",
    "armv8l": "arm32",
}


@dataclass(frozen=True)
class Environment:
    """The host facts that rules are matched against."""

    os_name: str
    arch: str
    os_version: str = ""
    features: Mapping[str, bool] = field(default_factory=dict)

    @classmethod
    def current(cls, features: Optional[Mapping[str, bool]] = None) -> "Environment":
        system = platform.system().lower()
        machine = platform.machine().lower()
        return cls(
            os_name=_OS_NAMES.get(system, system),
            arch=_ARCH_NAMES.get(machine, machine),
            os_version=platform.version(),
            features=dict(features or {}),
        )

    @property
    def arch_bits(self) -> str:
        """Value substituted for ${arch} in legacy native classifiers."""
        return "32" if self.arch in ("x86", "arm32") else "64"


def rule_matches(rule: Rule, env: Environment) -> bool:
    """Check if every filter present on a rule matches the environment."""
    if rule.os is not None:
        if rule.os.name is not None and rule.os.name != env.os_name:
            return False
        if rule.os.arch is not None and rule.os.arch != env.arch:
            return False
        if rule.os.version is not None:
            try:
                if re.search(rule.os.version, env.os_version) is None:
                    return False
            except re.error:
                return False
    if rule.features:
        for name, expected in rule.features.items():
            if env.features.get(name, False) != expected:
                return False
    return True


def evaluate(rules: Optional[Sequence[Rule]], env: Environment) -> bool:
    """Decide allow/deny for a rule list.

    No rules at all allows. Otherwise the last matching rule decides, and a
    list where nothing matches denies.
    """
    if not rules:
        return True

    allowed = False
    for rule in rules:
        if rule_matches(rule, env):
            allowed = rule.action == RuleAction.ALLOW
    return allowed
