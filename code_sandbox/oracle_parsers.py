"""Line scanners that turn free-form oracle text into typed records.

Every parser makes one pass over the lines, classifies each line once and
either opens a section or adds to the open one. Lines that fit nowhere are
dropped, so malformed text yields partial or empty records instead of errors.
"""
import re
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .schemas import (
    ErrorAnalysis,
    ParsedTestResults,
    SimulationResult,
    TestCase,
    TestStatistics,
)

_DECORATION = re.compile(r'^[#*>\d.)\s]+')
_BULLETS = ('-', '•')


def _lines(text: Optional[str]) -> Iterable[str]:
    return (line.strip() for line in (text or '').splitlines())


def _clean(value: str) -> str:
    return value.strip().strip('*`').strip()


def _after_colon(line: str) -> str:
    _, _, rest = line.partition(':')
    return _clean(rest)


def _bullet(line: str) -> Optional[str]:
    if line.startswith(_BULLETS):
        item = line[1:].strip()
        if item and set(item) != {'-'}:
            return item
    return None


# Test cases

_CASE_HEADER = re.compile(r'^[#*\-\s]*(?:\d+[.)]\s*)?test\s*case\b', re.IGNORECASE)
_FIELD = re.compile(r'(expected\s+output|input|output|description)\s*\**\s*:', re.IGNORECASE)


def default_test_cases() -> List[TestCase]:
    return [
        TestCase(input='[1, 2, 3, 4, 5]', output='15', description='Basic positive numbers'),
        TestCase(input='[-1, -2, -3]', output='-1', description='All negative numbers'),
        TestCase(input='[0]', output='0', description='Single element'),
        TestCase(input='[]', output='0', description='Empty array'),
        TestCase(input='[1, -2, 3, -4, 5]', output='5', description='Mixed positive and negative'),
    ]


def validate_test_case(case: TestCase) -> bool:
    return bool(case.input) and bool(case.output)


def _field_name(marker: str) -> str:
    marker = marker.lower()
    return 'output' if 'output' in marker else marker


def parse_test_cases(text: Optional[str]) -> List[TestCase]:
    """Extract well-formed test cases, or the default set when there are none."""
    cases: List[Dict[str, str]] = []
    current: Optional[Dict[str, str]] = None
    pending: Optional[str] = None

    def open_case() -> Dict[str, str]:
        case = {'input': '', 'output': '', 'description': ''}
        cases.append(case)
        return case

    for line in _lines(text):
        if not line:
            pending = None
            continue
        if line.startswith('```'):
            continue

        fields = list(_FIELD.finditer(line))
        if _CASE_HEADER.match(line):
            current = open_case()
            pending = None

        if not fields:
            if pending and current is not None and not _CASE_HEADER.match(line):
                value = _clean(line)
                current[pending] = f'{current[pending]}\n{value}' if current[pending] else value
            continue

        for i, match in enumerate(fields):
            end = fields[i + 1].start() if i + 1 < len(fields) else len(line)
            name = _field_name(match.group(1))
            value = _clean(line[match.end():end]).rstrip(',;').strip()
            if current is None or (name == 'input' and current['input']):
                current = open_case()
            current[name] = value
            pending = None if value else name

    parsed = [
        TestCase(input=c['input'], output=c['output'], description=c['description'] or None)
        for c in cases
    ]
    valid = [case for case in parsed if validate_test_case(case)]
    return valid or default_test_cases()


def summarize_test_cases(cases: Iterable[TestCase]) -> TestStatistics:
    cases = list(cases)
    descriptions = [(c.description or '').lower() for c in cases]
    return TestStatistics(
        total=len(cases),
        valid=sum(1 for c in cases if validate_test_case(c)),
        edge_cases=sum(1 for d in descriptions if 'edge' in d),
        stress_tests=sum(1 for d in descriptions if 'stress' in d),
    )


# Oracle review of a run

_TEST_LABEL = re.compile(r'^[#*\-\s]*(test\s*case\b\s*#?\s*\d*)', re.IGNORECASE)
_FAILED = re.compile(r'\bfail(?:ed|s|ure|ing)?\b|❌', re.IGNORECASE)
_PASSED = re.compile(r'\bpass(?:ed|es|ing)?\b|✅', re.IGNORECASE)
_TIME_COMPLEXITY = re.compile(r'time\s+complexity\s*\**\s*:\s*(.+)', re.IGNORECASE)
_SPACE_COMPLEXITY = re.compile(r'space\s+complexity\s*\**\s*:\s*(.+)', re.IGNORECASE)
_EXECUTION_TIME = re.compile(r'execution\s+time\s*\**\s*:\s*(.+)', re.IGNORECASE)


def parse_test_results(text: Optional[str]) -> ParsedTestResults:
    results = ParsedTestResults()
    current: Optional[str] = None
    decided = False
    in_errors = False

    for line in _lines(text):
        if not line:
            in_errors = False
            continue

        time_match = _TIME_COMPLEXITY.search(line)
        space_match = _SPACE_COMPLEXITY.search(line)
        exec_match = _EXECUTION_TIME.search(line)
        if time_match or space_match or exec_match:
            if time_match:
                results.performance.time_complexity = _clean(time_match.group(1))
            if space_match:
                results.performance.space_complexity = _clean(space_match.group(1))
            if exec_match:
                results.performance.execution_time = _clean(exec_match.group(1))
            in_errors = False
            continue

        label = _TEST_LABEL.match(line)
        if label and ':' in line:
            current = ' '.join(label.group(1).split()).title()
            decided = False
            in_errors = False
            results.total_tests += 1
            line = line.partition(':')[2]

        if current and not decided and _FAILED.search(line):
            results.failed_tests.append(current)
            decided = True
        elif current and not decided and _PASSED.search(line):
            results.passed_tests.append(current)
            decided = True
        elif 'error' in line.lower():
            in_errors = True
            results.error_messages.append(line.strip())
        elif in_errors:
            results.error_messages.append(line)

    results.all_passed = bool(results.passed_tests) and not results.failed_tests
    return results


# Oracle simulation of a run

_FINAL_OUTPUT = re.compile(r'final\s+output\s*\**\s*:\s*(.*)', re.IGNORECASE)
_MEMORY_USAGE = re.compile(r'memory\s+usage\s*\**\s*:\s*(.+)', re.IGNORECASE)
_TRACE_HEADER = re.compile(r'^(?:step[-\s]by[-\s]step\s+)?execution\s+trace\b', re.IGNORECASE)
_ERRORS_HEADER = re.compile(r'^(?:potential\s+)?(?:runtime\s+)?errors?\b[^:]*:', re.IGNORECASE)
_NOTHING = {'none', 'n/a', 'no errors', 'no runtime errors'}


def parse_simulation(text: Optional[str]) -> SimulationResult:
    result = SimulationResult()
    section: Optional[str] = None

    for line in _lines(text):
        if not line:
            continue
        plain = _DECORATION.sub('', line)

        final = _FINAL_OUTPUT.search(plain)
        if final:
            result.output = _clean(final.group(1))
            section = None
            continue
        memory = _MEMORY_USAGE.search(plain)
        if memory:
            result.memory_usage = _clean(memory.group(1))
            section = None
            continue
        complexity = _TIME_COMPLEXITY.search(plain)
        if complexity:
            result.time_complexity = _clean(complexity.group(1))
            section = None
            continue
        if _TRACE_HEADER.match(plain):
            section = 'trace'
            continue
        if _ERRORS_HEADER.match(plain):
            section = 'errors'
            rest = _after_colon(plain)
            if rest and rest.lower().rstrip('.') not in _NOTHING:
                result.errors.append(rest)
            continue

        if section == 'trace':
            result.execution_trace.append(line)
        elif section == 'errors' and line.lower().rstrip('.') not in _NOTHING:
            result.errors.append(line)

    return result


# Oracle error analysis

class AnalysisSection(Enum):
    NONE = 'none'
    ROOT_CAUSE = 'root_cause'
    SPECIFIC_ISSUES = 'specific_issues'
    MISSING_EDGE_CASES = 'missing_edge_cases'
    ALGORITHMIC_PROBLEMS = 'algorithmic_problems'
    SUGGESTIONS = 'suggestions'
    ALTERNATIVES = 'alternative_approaches'


_SECTION_KEYWORDS: Tuple[Tuple[str, AnalysisSection], ...] = (
    ('root cause', AnalysisSection.ROOT_CAUSE),
    ('specific issue', AnalysisSection.SPECIFIC_ISSUES),
    ('missing edge case', AnalysisSection.MISSING_EDGE_CASES),
    ('edge case', AnalysisSection.MISSING_EDGE_CASES),
    ('algorithmic problem', AnalysisSection.ALGORITHMIC_PROBLEMS),
    ('algorithmic issue', AnalysisSection.ALGORITHMIC_PROBLEMS),
    ('suggest', AnalysisSection.SUGGESTIONS),
    ('fixes', AnalysisSection.SUGGESTIONS),
    ('alternative', AnalysisSection.ALTERNATIVES),
)


def _section_header(line: str) -> Optional[Tuple[AnalysisSection, str]]:
    """Return the section a header line opens and any text after its colon."""
    if line.startswith(_BULLETS):
        return None
    markdown_heading = line.startswith('#')
    plain = _DECORATION.sub('', line).lower()
    for keyword, section in _SECTION_KEYWORDS:
        if not plain.startswith(keyword):
            continue
        head, colon, _ = plain.partition(':')
        if (colon and len(head) <= len(keyword) + 40) or markdown_heading:
            return section, _after_colon(line) if colon else ''
    return None


def parse_error_analysis(text: Optional[str]) -> ErrorAnalysis:
    analysis = ErrorAnalysis()
    state = AnalysisSection.NONE

    for line in _lines(text):
        if not line:
            continue

        header = _section_header(line)
        if header:
            state, inline = header
            if state is AnalysisSection.ROOT_CAUSE and inline:
                analysis.root_cause = inline
            continue

        if state is AnalysisSection.ROOT_CAUSE:
            if not analysis.root_cause:
                analysis.root_cause = _bullet(line) or _clean(line)
            continue

        item = _bullet(line)
        if item and state is not AnalysisSection.NONE:
            getattr(analysis, state.value).append(item)

    return analysis
