import logging
from typing import Dict, List, Optional, Protocol, Sequence, Union

from .errors import OracleError
from .oracle_parsers import parse_error_analysis, parse_simulation, parse_test_cases, parse_test_results
from .schemas import ErrorAnalysis, ParsedTestResults, SimulationResult, TestCase

logger = logging.getLogger(__name__)

Message = Dict[str, str]


class Oracle(Protocol):
    """Any text-generation backend. The reply is free text, never trusted to be structured."""

    def complete(self, messages: List[Message], *, temperature: float, max_tokens: int) -> str:
        ...


def _fenced(code: str, language: str = '') -> str:
    return f'```{language}\n{code}\n```'


def format_test_cases(test_cases: Union[str, Sequence[TestCase]]) -> str:
    if isinstance(test_cases, str):
        return test_cases
    blocks = []
    for i, case in enumerate(test_cases, start=1):
        lines = [f'Test Case {i}:', f'Input: {case.input}', f'Output: {case.output}']
        if case.description:
            lines.append(f'Description: {case.description}')
        blocks.append('\n'.join(lines))
    return '\n\n'.join(blocks)


def case_generation_prompt(problem: str, count: int) -> List[Message]:
    return [
        {
            'role': 'system',
            'content': 'You are an expert at generating comprehensive test cases for DSA problems. '
                       'Generate diverse test cases that cover normal cases, edge cases, boundary '
                       'conditions, and stress tests.',
        },
        {
            'role': 'user',
            'content': f"""Generate {count} comprehensive test cases for this problem:

{problem}

Include normal cases, edge cases (empty input, single element), boundary
conditions, stress tests and corner cases.

Write every test case in exactly this form:
Test Case <n>:
Input: <stdin for the program on one line>
Output: <expected stdout>
Description: <what it tests>""",
        },
    ]


def execution_review_prompt(code: str, language: str, test_cases: str, problem: str) -> List[Message]:
    return [
        {
            'role': 'system',
            'content': 'You are an expert code execution validator. Analyze the given code and test '
                       'cases to determine if the solution is correct.',
        },
        {
            'role': 'user',
            'content': f"""Validate this {language} code against the test cases.

Problem Description:
{problem}

Code:
{_fenced(code, language)}

Test Cases:
{test_cases}

For each test case write "Test Case <n>: PASS" or "Test Case <n>: FAIL".
Then list any errors under "Errors:", and finish with
"Time Complexity: ..." and "Space Complexity: ..." lines.""",
        },
    ]


def simulation_prompt(code: str, language: str, stdin: str) -> List[Message]:
    return [
        {
            'role': 'system',
            'content': 'You are an expert code execution simulator. Simulate the execution of the '
                       'given code with the provided input and return the expected output.',
        },
        {
            'role': 'user',
            'content': f"""Simulate the execution of this {language} code with the given input:

Code:
{_fenced(code, language)}

Input:
{stdin}

Answer with these sections:
Execution Trace: (one step per line)
Final Output: ...
Errors: (one per line, or None)
Memory Usage: ...
Time Complexity: ...""",
        },
    ]


def error_analysis_prompt(code: str, error_details: str, test_cases: str) -> List[Message]:
    return [
        {
            'role': 'system',
            'content': 'You are an expert at analyzing code errors and providing detailed debugging information.',
        },
        {
            'role': 'user',
            'content': f"""Analyze these errors in the code:

Failed Code:
{_fenced(code)}

Error Details:
{error_details}

Failed Test Cases:
{test_cases}

Answer with these headers, using "- " bullets under each list:
Root Cause: <one sentence>
Specific Issues:
Missing Edge Cases:
Algorithmic Problems:
Suggestions:
Alternative Approaches:""",
        },
    ]


class OracleAssistant:
    """Prompts an oracle and parses its replies into typed records."""

    def __init__(self, oracle: Oracle):
        self.oracle = oracle

    def _ask(self, what: str, messages: List[Message], temperature: float, max_tokens: int) -> str:
        logger.debug('asking oracle: %s', what)
        try:
            reply = self.oracle.complete(messages, temperature=temperature, max_tokens=max_tokens)
        except Exception as e:
            logger.error('oracle request failed (%s): %s', what, e)
            raise OracleError(f'{what} failed: {e}') from e
        return reply or ''

    def generate_test_cases(self, problem: str, count: int = 15) -> List[TestCase]:
        reply = self._ask('test case generation', case_generation_prompt(problem, count), 0.3, 1500)
        cases = parse_test_cases(reply)
        logger.info('oracle produced %d usable test case(s)', len(cases))
        return cases

    def review_execution(
        self,
        code: str,
        language: str,
        test_cases: Union[str, Sequence[TestCase]],
        problem: str,
    ) -> ParsedTestResults:
        messages = execution_review_prompt(code, language, format_test_cases(test_cases), problem)
        return parse_test_results(self._ask('test execution review', messages, 0.1, 2000))

    def simulate_execution(self, code: str, language: str, stdin: Optional[str] = None) -> SimulationResult:
        messages = simulation_prompt(code, language, stdin or '')
        return parse_simulation(self._ask('code simulation', messages, 0.1, 1500))

    def analyze_errors(
        self,
        code: str,
        error_details: str,
        test_cases: Union[str, Sequence[TestCase]],
    ) -> ErrorAnalysis:
        messages = error_analysis_prompt(code, error_details, format_test_cases(test_cases))
        return parse_error_analysis(self._ask('error analysis', messages, 0.2, 2000))
