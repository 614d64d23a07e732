import glob
import logging
import os
import platform
import re
import shutil
import sys
import tempfile
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Union

from .config import EngineConfig
from .errors import InvalidSubmissionError, SandboxInfrastructureError, UnsupportedLanguageError
from .process_runner import encode_text, run_process
from .schemas import ExecutionResult, ExecutionStatus, Language, LanguageInfo, Submission, SystemInfo
from .security import DEFAULT_POLICY, SecurityPolicy

logger = logging.getLogger(__name__)

# {source}, {binary}, {workdir}, {class_name} and {memory} are filled in per run.
LANG_CONFIG: Dict[Language, Dict[str, Any]] = {
    Language.CPP: {
        'name': 'C++',
        'extension': 'cpp',
        'compile': ['g++', '-std=c++17', '-O2', '-o', '{binary}', '{source}'],
        'run': ['{binary}'],
        'limit_address_space': True,
    },
    Language.C: {
        'name': 'C',
        'extension': 'c',
        'compile': ['gcc', '-O2', '-o', '{binary}', '{source}'],
        'run': ['{binary}'],
        'limit_address_space': True,
    },
    Language.JAVA: {
        'name': 'Java',
        'extension': 'java',
        'compile': ['javac', '{source}'],
        # the JVM reserves far more address space than it uses; cap the heap instead
        'run': ['java', '-Xmx{memory}m', '-cp', '{workdir}', '{class_name}'],
        'limit_address_space': False,
    },
    Language.PYTHON: {
        'name': 'Python',
        'extension': 'py',
        'compile': None,
        'run': ['python3', '{source}'],
        'limit_address_space': True,
    },
    Language.PYTHON2: {
        'name': 'Python 2',
        'extension': 'py',
        'compile': None,
        'run': ['python2', '{source}'],
        'limit_address_space': True,
    },
    Language.JAVASCRIPT: {
        'name': 'JavaScript',
        'extension': 'js',
        'compile': None,
        'run': ['node', '--max-old-space-size={memory}', '{source}'],
        'limit_address_space': False,
    },
}

BINARY_STEM = 'solution'
EXECUTABLE_SUFFIXES = ('', '.exe', '.out')

_JAVA_PUBLIC_CLASS = re.compile(r'public\s+(?:(?:final|abstract)\s+)*class\s+([A-Za-z_$][\w$]*)')
_JAVA_ANY_CLASS = re.compile(r'\bclass\s+([A-Za-z_$][\w$]*)')


def java_class_name(code: str) -> str:
    match = _JAVA_PUBLIC_CLASS.search(code) or _JAVA_ANY_CLASS.search(code)
    return match.group(1) if match else 'Main'


def source_name(code: str, language: Language) -> str:
    if language is Language.JAVA:
        return f'{java_class_name(code)}.java'
    return f"{BINARY_STEM}.{LANG_CONFIG[language]['extension']}"


def _render(template: List[str], params: Dict[str, Any]) -> List[str]:
    return [part.format(**params) for part in template]


def _child_env(workdir: str) -> Dict[str, str]:
    return {
        'PATH': os.environ.get('PATH', '/usr/local/bin:/usr/bin:/bin'),
        'HOME': workdir,
        'TMPDIR': workdir,
        'LANG': 'C.UTF-8',
        'PYTHONIOENCODING': 'utf-8',
        'PYTHONDONTWRITEBYTECODE': '1',
    }


def cleanup(workdir: str) -> None:
    """Best-effort removal of everything one execution created."""
    paths = glob.glob(os.path.join(workdir, BINARY_STEM + '.*'))
    paths.extend(glob.glob(os.path.join(workdir, '*.java')))
    paths.extend(os.path.join(workdir, BINARY_STEM + suffix) for suffix in EXECUTABLE_SUFFIXES)
    paths.extend(glob.glob(os.path.join(workdir, '*.class')))
    for path in paths:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning('cleanup: could not remove %s: %s', path, e)
    try:
        shutil.rmtree(workdir)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning('cleanup: could not remove workspace %s: %s', workdir, e)


class CodeSandbox:
    """Compiles or interprets one source file per call inside a throwaway workspace.

    Non-zero exits, compile errors, timeouts and oversized output come back as
    an ``ExecutionResult``; only configuration, policy and infrastructure
    faults raise.
    """

    def __init__(self, config: Optional[EngineConfig] = None, policy: Optional[SecurityPolicy] = DEFAULT_POLICY):
        self.config = config or EngineConfig()
        self.policy = policy

    def validate_code(self, code: str, language: Union[str, Language]) -> bool:
        lang = Language.parse(language)
        if self.policy is not None:
            self.policy.check(code, lang)
        return True

    def prepare(self, code: str, language: Union[str, Language]) -> Submission:
        """Run every pre-flight check and return the accepted submission."""
        lang = Language.parse(language)
        if not code or not code.strip():
            raise InvalidSubmissionError('code must be non-empty')
        encode_text(code, 'code')
        self.validate_code(code, lang)
        return Submission(code=code, language=lang)

    def execute(self, code: str, language: Union[str, Language], stdin: Optional[str] = None) -> ExecutionResult:
        return self.run(self.prepare(code, language), stdin)

    def run(self, submission: Submission, stdin: Optional[str] = None) -> ExecutionResult:
        cfg = LANG_CONFIG.get(submission.language)
        if cfg is None:
            raise UnsupportedLanguageError(submission.language)
        source = encode_text(submission.code, 'code')
        encode_text(stdin, 'stdin')

        with self.workspace() as workdir:
            source_path = os.path.join(workdir, source_name(submission.code, submission.language))
            try:
                with open(source_path, 'wb') as f:
                    f.write(source)
            except OSError as e:
                raise SandboxInfrastructureError(f'could not write source file: {e}') from e
            params = {
                'source': source_path,
                'binary': os.path.join(workdir, BINARY_STEM),
                'workdir': workdir,
                'class_name': os.path.splitext(os.path.basename(source_path))[0],
                'memory': self.config.memory_limit_mb,
            }
            env = _child_env(workdir)

            if cfg['compile']:
                logger.debug('compiling %s in %s', submission.language.value, workdir)
                compiled = run_process(
                    _render(cfg['compile'], params),
                    cwd=workdir,
                    timeout_seconds=self.config.timeout_seconds,
                    max_output_bytes=self.config.max_output_bytes,
                    env=env,
                )
                if compiled['timed_out'] or compiled['exit_code'] != 0:
                    return self._compile_failure(compiled)

            logger.debug('running %s in %s', submission.language.value, workdir)
            outcome = run_process(
                _render(cfg['run'], params),
                cwd=workdir,
                stdin=stdin,
                timeout_seconds=self.config.timeout_seconds,
                max_output_bytes=self.config.max_output_bytes,
                address_space_mb=self.config.memory_limit_mb if cfg['limit_address_space'] else None,
                env=env,
            )
            return self._to_result(outcome)

    @contextmanager
    def workspace(self) -> Iterator[str]:
        """A fresh directory under ``base_dir``, removed on every exit path."""
        try:
            os.makedirs(self.config.base_dir, exist_ok=True)
            workdir = tempfile.mkdtemp(prefix=f'solution_{int(time.time() * 1000)}_', dir=self.config.base_dir)
        except OSError as e:
            raise SandboxInfrastructureError(f'could not create workspace: {e}') from e
        try:
            yield workdir
        finally:
            cleanup(workdir)

    def _compile_failure(self, compiled: Dict[str, Any]) -> ExecutionResult:
        if compiled['timed_out']:
            return ExecutionResult(
                success=False,
                stderr=f'Compilation timed out after {self.config.timeout_seconds:g}s',
                exit_code=compiled['exit_code'],
                execution_time_ms=compiled['time_ms'],
                status=ExecutionStatus.TIMEOUT,
            )
        message = (compiled['stderr'] or compiled['stdout']).strip()
        return ExecutionResult(
            success=False,
            stdout=compiled['stdout'].strip(),
            stderr=message or 'Compilation failed',
            exit_code=compiled['exit_code'],
            execution_time_ms=compiled['time_ms'],
            status=ExecutionStatus.COMPILE_ERROR,
        )

    def _to_result(self, outcome: Dict[str, Any]) -> ExecutionResult:
        if outcome['timed_out']:
            return ExecutionResult(
                success=False,
                stderr=f'Execution timed out after {self.config.timeout_seconds:g}s',
                exit_code=outcome['exit_code'],
                execution_time_ms=outcome['time_ms'],
                status=ExecutionStatus.TIMEOUT,
            )
        if outcome['output_exceeded']:
            return ExecutionResult(
                success=False,
                stdout=outcome['stdout'].strip(),
                stderr=f'Output limit of {self.config.max_output_bytes} bytes exceeded',
                exit_code=outcome['exit_code'],
                execution_time_ms=outcome['time_ms'],
                status=ExecutionStatus.OUTPUT_LIMIT_EXCEEDED,
            )
        exit_code = outcome['exit_code']
        return ExecutionResult(
            success=exit_code == 0,
            stdout=outcome['stdout'].strip(),
            stderr=outcome['stderr'].strip(),
            exit_code=exit_code,
            execution_time_ms=outcome['time_ms'],
            status=ExecutionStatus.OK if exit_code == 0 else ExecutionStatus.RUNTIME_ERROR,
        )

    def supported_languages(self) -> List[LanguageInfo]:
        infos = []
        for lang, cfg in LANG_CONFIG.items():
            tool = cfg['compile'][0] if cfg['compile'] else cfg['run'][0]
            infos.append(LanguageInfo(
                name=cfg['name'],
                language=lang,
                extension=cfg['extension'],
                compiler=tool if cfg['compile'] else None,
                interpreter=None if cfg['compile'] else tool,
            ))
        return infos

    def is_language_supported(self, language: str) -> bool:
        key = (language or '').strip().lower()
        for info in self.supported_languages():
            if key in (info.name.lower(), info.language.value, info.extension):
                return True
        try:
            Language.parse(key)
        except UnsupportedLanguageError:
            return False
        return True

    def system_info(self) -> SystemInfo:
        tools = []
        for cfg in LANG_CONFIG.values():
            for cmd in (cfg['compile'], cfg['run']):
                if cmd and not cmd[0].startswith('{') and cmd[0] not in tools:
                    tools.append(cmd[0])
        return SystemInfo(
            platform=sys.platform,
            arch=platform.machine(),
            python_version=platform.python_version(),
            base_dir=self.config.base_dir,
            supported_languages=[cfg['name'] for cfg in LANG_CONFIG.values()],
            available_toolchains={tool: shutil.which(tool) is not None for tool in tools},
        )
