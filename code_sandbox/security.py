"""Pattern denylist checked against source text before anything is run.

This is a heuristic gate. A determined submitter can get around any textual
filter, so the real containment is the process limits applied by
``process_runner`` (and whatever OS-level isolation the host adds on top).

The default JavaScript rules deny ``require(`` and ``process.``, which are
the only ways a node program can read stdin. Programs driven by stdin need a
relaxed policy for JavaScript, e.g. ``SecurityPolicy()`` or a copy of the
default without those two rules.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Tuple, Union

from .errors import SecurityViolation
from .schemas import Language

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecurityRule:
    pattern: str
    reason: str

    def matches(self, code: str) -> bool:
        return re.search(self.pattern, code, re.IGNORECASE) is not None


@dataclass(frozen=True)
class SecurityPolicy:
    """Ordered pattern -> reason rules, keyed by language.

    An empty policy allows everything.
    """

    rules: Dict[Language, Tuple[SecurityRule, ...]] = field(default_factory=dict)

    def rules_for(self, language: Union[str, Language]) -> Tuple[SecurityRule, ...]:
        return self.rules.get(Language.parse(language), ())

    def check(self, code: str, language: Union[str, Language]) -> None:
        lang = Language.parse(language)
        for rule in self.rules_for(lang):
            if rule.matches(code):
                logger.warning('rejected %s submission: %s', lang.value, rule.reason)
                raise SecurityViolation(lang, rule.pattern, rule.reason)

    def with_rules(self, language: Union[str, Language], rules: Iterable[SecurityRule]) -> 'SecurityPolicy':
        lang = Language.parse(language)
        merged = dict(self.rules)
        merged[lang] = tuple(merged.get(lang, ())) + tuple(rules)
        return SecurityPolicy(rules=merged)


_NATIVE_RULES = (
    SecurityRule(r'system\s*\(', 'process spawning'),
    SecurityRule(r'exec\s*\(', 'process spawning'),
    SecurityRule(r'popen\s*\(', 'process spawning'),
    SecurityRule(r'fork\s*\(', 'process spawning'),
    SecurityRule(r'socket\s*\(', 'network access'),
    SecurityRule(r'network', 'network access'),
    SecurityRule(r'http', 'network access'),
    SecurityRule(r'curl', 'network access'),
)

_PYTHON_RULES = (
    SecurityRule(r'import\s+os', 'filesystem and process access'),
    SecurityRule(r'import\s+subprocess', 'process spawning'),
    SecurityRule(r'import\s+sys', 'interpreter access'),
    SecurityRule(r'eval\s*\(', 'dynamic code evaluation'),
    SecurityRule(r'exec\s*\(', 'dynamic code evaluation'),
    SecurityRule(r'__import__\s*\(', 'dynamic import'),
    SecurityRule(r'open\s*\(', 'filesystem access'),
    SecurityRule(r'file\s*\(', 'filesystem access'),
)

_JAVA_RULES = (
    SecurityRule(r'Runtime\.getRuntime\(\)', 'process spawning'),
    SecurityRule(r'ProcessBuilder', 'process spawning'),
    SecurityRule(r'System\.exec', 'process spawning'),
    SecurityRule(r'File\.', 'filesystem access'),
    SecurityRule(r'Network', 'network access'),
    SecurityRule(r'Socket', 'network access'),
)

_JAVASCRIPT_RULES = (
    SecurityRule(r'eval\s*\(', 'dynamic code evaluation'),
    SecurityRule(r'Function\s*\(', 'dynamic code evaluation'),
    SecurityRule(r'require\s*\(', 'module loading'),
    SecurityRule(r'import\s*\(', 'dynamic import'),
    SecurityRule(r'process\.', 'process access'),
    SecurityRule(r'child_process', 'process spawning'),
    SecurityRule(r'fs\.', 'filesystem access'),
)

DEFAULT_POLICY = SecurityPolicy(rules={
    Language.CPP: _NATIVE_RULES,
    Language.C: _NATIVE_RULES,
    Language.PYTHON: _PYTHON_RULES,
    Language.PYTHON2: _PYTHON_RULES,
    Language.JAVA: _JAVA_RULES,
    Language.JAVASCRIPT: _JAVASCRIPT_RULES,
})


def validate_code(code: str, language: Union[str, Language], policy: SecurityPolicy = DEFAULT_POLICY) -> bool:
    policy.check(code, language)
    return True
