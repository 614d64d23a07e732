from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import UnsupportedLanguageError


class Language(str, Enum):
    CPP = 'cpp'
    C = 'c'
    PYTHON = 'python'
    PYTHON2 = 'python2'
    JAVA = 'java'
    JAVASCRIPT = 'javascript'

    @classmethod
    def parse(cls, value: Union[str, 'Language']) -> 'Language':
        if isinstance(value, cls):
            return value
        key = str(value or '').strip().lower()
        key = LANGUAGE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise UnsupportedLanguageError(value) from None


LANGUAGE_ALIASES = {
    'c++': 'cpp',
    'py': 'python',
    'python3': 'python',
    'js': 'javascript',
    'node': 'javascript',
}


class ExecutionStatus(str, Enum):
    OK = 'ok'
    RUNTIME_ERROR = 'runtime_error'
    COMPILE_ERROR = 'compile_error'
    TIMEOUT = 'timeout'
    OUTPUT_LIMIT_EXCEEDED = 'output_limit_exceeded'


class Verdict(str, Enum):
    PASSED = 'passed'
    WRONG_ANSWER = 'wrong_answer'
    RUNTIME_ERROR = 'runtime_error'
    COMPILE_ERROR = 'compile_error'
    TIMEOUT = 'timeout'
    OUTPUT_LIMIT_EXCEEDED = 'output_limit_exceeded'
    ERROR = 'error'


class Submission(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    language: Language


class TestCase(BaseModel):
    __test__ = False

    input: str = ''
    output: str = ''
    description: Optional[str] = None


class ExecutionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    stdout: str = ''
    stderr: str = ''
    exit_code: int
    execution_time_ms: int = 0
    status: ExecutionStatus = ExecutionStatus.OK


class TestCaseOutcome(BaseModel):
    __test__ = False

    index: int
    input: str
    expected_output: str
    actual_output: Optional[str] = None
    success: bool
    error: Optional[str] = None
    execution_time_ms: int = 0
    verdict: Verdict


class TestReport(BaseModel):
    __test__ = False

    total_tests: int
    passed_tests: int
    failed_tests: int
    results: List[TestCaseOutcome]
    success_rate: float


class LanguageInfo(BaseModel):
    name: str
    language: Language
    extension: str
    compiler: Optional[str] = None
    interpreter: Optional[str] = None


class SystemInfo(BaseModel):
    platform: str
    arch: str
    python_version: str
    base_dir: str
    supported_languages: List[str]
    available_toolchains: dict


# Records parsed from oracle text

class PerformanceMetrics(BaseModel):
    time_complexity: str = 'N/A'
    space_complexity: str = 'N/A'
    execution_time: str = 'N/A'


class ParsedTestResults(BaseModel):
    all_passed: bool = False
    total_tests: int = 0
    passed_tests: List[str] = Field(default_factory=list)
    failed_tests: List[str] = Field(default_factory=list)
    error_messages: List[str] = Field(default_factory=list)
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)


class SimulationResult(BaseModel):
    output: str = ''
    execution_trace: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    memory_usage: str = 'N/A'
    time_complexity: str = 'N/A'


class ErrorAnalysis(BaseModel):
    root_cause: str = ''
    specific_issues: List[str] = Field(default_factory=list)
    missing_edge_cases: List[str] = Field(default_factory=list)
    algorithmic_problems: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    alternative_approaches: List[str] = Field(default_factory=list)


class TestStatistics(BaseModel):
    __test__ = False

    total: int
    valid: int
    edge_cases: int
    stress_tests: int


# HTTP payloads

class ExecutionRequest(BaseModel):
    code: str
    language: str
    input: Optional[str] = None


class TestSuiteRequest(BaseModel):
    __test__ = False

    code: str
    language: str
    test_cases: List[TestCase]
