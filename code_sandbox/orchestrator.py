import logging
import re
from typing import Optional, Sequence, Union

from .errors import SandboxError
from .executor import CodeSandbox
from .schemas import (
    ExecutionResult,
    ExecutionStatus,
    Language,
    TestCase,
    TestCaseOutcome,
    TestReport,
    Verdict,
)

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r'\s+')
_NOT_ALNUM_OR_SPACE = re.compile(r'[^\w\s]|_')

_FAILURE_VERDICTS = {
    ExecutionStatus.RUNTIME_ERROR: Verdict.RUNTIME_ERROR,
    ExecutionStatus.COMPILE_ERROR: Verdict.COMPILE_ERROR,
    ExecutionStatus.TIMEOUT: Verdict.TIMEOUT,
    ExecutionStatus.OUTPUT_LIMIT_EXCEEDED: Verdict.OUTPUT_LIMIT_EXCEEDED,
}


def normalize(text: Optional[str]) -> str:
    """Trim, collapse whitespace, lower-case, then drop punctuation.

    Numeric formatting is not reconciled: "1.0" and "1" stay different.
    """
    text = _WHITESPACE.sub(' ', (text or '').strip()).lower()
    return _NOT_ALNUM_OR_SPACE.sub('', text)


def compare_output(actual: Optional[str], expected: Optional[str]) -> bool:
    return normalize(actual) == normalize(expected)


def success_rate(passed: int, total: int) -> float:
    if total == 0:
        return 0.0
    return passed / total * 100


class TestOrchestrator:
    """Runs one submission against an ordered list of test cases."""

    __test__ = False

    def __init__(self, sandbox: Optional[CodeSandbox] = None):
        self.sandbox = sandbox or CodeSandbox()

    def run_test_suite(
        self,
        code: str,
        language: Union[str, Language],
        test_cases: Sequence[TestCase],
    ) -> TestReport:
        submission = self.sandbox.prepare(code, language)
        logger.info('running %d test case(s) for %s submission', len(test_cases), submission.language.value)

        results = []
        for index, case in enumerate(test_cases, start=1):
            logger.debug('test case %d/%d', index, len(test_cases))
            try:
                result = self.sandbox.run(submission, case.input)
            except SandboxError as e:
                logger.warning('test case %d could not be executed: %s', index, e)
                results.append(TestCaseOutcome(
                    index=index,
                    input=case.input,
                    expected_output=case.output,
                    success=False,
                    error=str(e),
                    verdict=Verdict.ERROR,
                ))
                continue
            results.append(self._grade(index, case, result))

        passed = sum(1 for r in results if r.success)
        report = TestReport(
            total_tests=len(test_cases),
            passed_tests=passed,
            failed_tests=len(results) - passed,
            results=results,
            success_rate=success_rate(passed, len(test_cases)),
        )
        logger.info('%d/%d test case(s) passed', report.passed_tests, report.total_tests)
        return report

    def _grade(self, index: int, case: TestCase, result: ExecutionResult) -> TestCaseOutcome:
        if result.status is not ExecutionStatus.OK:
            return TestCaseOutcome(
                index=index,
                input=case.input,
                expected_output=case.output,
                actual_output=None,
                success=False,
                error=result.stderr or f'Process exited with code {result.exit_code}',
                execution_time_ms=result.execution_time_ms,
                verdict=_FAILURE_VERDICTS.get(result.status, Verdict.ERROR),
            )

        passed = compare_output(result.stdout, case.output)
        return TestCaseOutcome(
            index=index,
            input=case.input,
            expected_output=case.output,
            actual_output=result.stdout,
            success=passed,
            execution_time_ms=result.execution_time_ms,
            verdict=Verdict.PASSED if passed else Verdict.WRONG_ANSWER,
        )
