"""
Tests for the source-text denylist.
"""

import pytest

from code_sandbox.errors import SecurityViolation
from code_sandbox.schemas import Language
from code_sandbox.security import DEFAULT_POLICY, SecurityPolicy, SecurityRule, validate_code


class TestDefaultPolicy:
    @pytest.mark.parametrize(
        "language,code",
        [
            ("python", "import os\nprint(os.listdir('.'))"),
            ("python", "import subprocess"),
            ("python", "import sys\nprint(sys.stdin.read())"),
            ("python", "print(eval('1+1'))"),
            ("python", "exec ('x = 1')"),
            ("python", "m = __import__('os')"),
            ("python", "data = open('/etc/passwd').read()"),
            ("python2", "import os"),
            ("cpp", '#include <cstdlib>\nint main() { system("ls"); }'),
            ("cpp", "int main() { fork(); }"),
            ("c", 'int main() { popen("ls", "r"); }'),
            ("c", "int s = socket(AF_INET, SOCK_STREAM, 0);"),
            ("java", "Runtime.getRuntime().exec(\"ls\");"),
            ("java", "new ProcessBuilder(\"ls\").start();"),
            ("java", "java.net.Socket s;"),
            ("javascript", "const cp = require('child_process');"),
            ("javascript", "process.exit(1)"),
            ("javascript", "new Function('return 1')()"),
            ("javascript", "import('fs')"),
        ],
    )
    def test_rejects_denylisted_patterns(self, language, code):
        with pytest.raises(SecurityViolation) as exc_info:
            validate_code(code, language)

        assert exc_info.value.language is Language.parse(language)
        assert exc_info.value.reason

    @pytest.mark.parametrize(
        "language,code",
        [
            ("python", "import json\nprint(sum(json.loads(input())))"),
            ("cpp", "#include <iostream>\nint main() { int x; std::cin >> x; std::cout << x; }"),
            ("java", "public class Main { public static void main(String[] a) { System.out.println(1); } }"),
            ("javascript", "console.log([1, 2, 3].reduce((a, b) => a + b, 0));"),
        ],
    )
    def test_allows_plain_programs(self, language, code):
        assert validate_code(code, language) is True

    def test_matching_is_case_insensitive(self):
        with pytest.raises(SecurityViolation):
            validate_code("IMPORT OS", "python")

    def test_first_matching_rule_is_reported(self):
        with pytest.raises(SecurityViolation) as exc_info:
            validate_code("import os\nimport subprocess", "python")

        assert exc_info.value.pattern == r"import\s+os"


class TestCustomPolicy:
    def test_empty_policy_allows_everything(self):
        assert validate_code("import os", "python", SecurityPolicy()) is True

    def test_with_rules_extends_a_copy(self):
        policy = SecurityPolicy().with_rules("python", [SecurityRule(r"while\s+True", "unbounded loop")])

        with pytest.raises(SecurityViolation) as exc_info:
            policy.check("while True:\n    pass", "python")

        assert exc_info.value.reason == "unbounded loop"
        assert policy.rules_for("java") == ()
        assert DEFAULT_POLICY.rules_for("python") != policy.rules_for("python")

    def test_rules_are_ordered(self):
        first = SecurityRule(r"alpha", "first")
        second = SecurityRule(r"alpha|beta", "second")
        policy = SecurityPolicy().with_rules("c", [first, second])

        assert policy.rules_for(Language.C) == (first, second)
        with pytest.raises(SecurityViolation) as exc_info:
            policy.check("beta alpha", "c")
        assert exc_info.value.reason == "first"

    def test_javascript_stdin_needs_a_relaxed_policy(self):
        echo = "const data = require('fs').readFileSync(0, 'utf8');\nconsole.log(data.trim());"
        relaxed = SecurityPolicy(rules={
            **DEFAULT_POLICY.rules,
            Language.JAVASCRIPT: tuple(
                rule for rule in DEFAULT_POLICY.rules_for("javascript")
                if rule.pattern not in (r"require\s*\(", r"fs\.")
            ),
        })

        with pytest.raises(SecurityViolation):
            validate_code(echo, "javascript")
        assert validate_code(echo, "javascript", relaxed) is True
        assert validate_code(echo, "javascript", SecurityPolicy()) is True
