import logging
import math
import os
import signal
import subprocess
import threading
import time
from typing import Any, Dict, List, Optional

try:
    import resource
except ImportError:
    resource = None

from .errors import InvalidSubmissionError, SandboxInfrastructureError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def _read_output(raw: bytes) -> str:
    if not raw:
        return ''
    return raw.decode('utf-8', errors='replace')


def _child_limits(address_space_mb: Optional[int], cpu_seconds: int):
    def apply():
        resource.setrlimit(resource.RLIMIT_CORE, (0, 0))
        resource.setrlimit(resource.RLIMIT_CPU, (cpu_seconds, cpu_seconds))
        if address_space_mb:
            limit = address_space_mb * 1024 * 1024
            resource.setrlimit(resource.RLIMIT_AS, (limit, limit))
    return apply


def _kill(proc: subprocess.Popen) -> None:
    try:
        if os.name == 'posix':
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except OSError:
        # already gone
        pass


class _OutputCapture:
    """Collects stdout/stderr and kills the child once the byte ceiling is crossed."""

    def __init__(self, proc: subprocess.Popen, max_bytes: int):
        self.proc = proc
        self.max_bytes = max_bytes
        self.total = 0
        self.exceeded = False
        self.buffers = {'stdout': bytearray(), 'stderr': bytearray()}
        self._lock = threading.Lock()

    def drain(self, stream, name: str) -> None:
        try:
            for chunk in iter(lambda: stream.read1(_CHUNK_SIZE), b''):
                with self._lock:
                    room = self.max_bytes - self.total
                    self.buffers[name] += chunk[:max(room, 0)]
                    self.total += len(chunk)
                    if self.total > self.max_bytes and not self.exceeded:
                        self.exceeded = True
                        _kill(self.proc)
        except (OSError, ValueError):
            pass
        finally:
            stream.close()


def encode_text(text: Optional[str], what: str) -> bytes:
    """UTF-8 bytes for ``text``; text that cannot be encoded is a submission fault."""
    try:
        return (text or '').encode('utf-8')
    except UnicodeEncodeError as e:
        raise InvalidSubmissionError(f'{what} is not valid UTF-8 text: {e.reason} at position {e.start}') from e


def _feed_stdin(stream, payload: bytes) -> None:
    try:
        if payload:
            stream.write(payload)
    except (BrokenPipeError, OSError):
        # child exited without reading everything
        pass
    finally:
        try:
            stream.close()
        except OSError:
            pass


def run_process(
    cmd: List[str],
    cwd: str,
    stdin: Optional[str] = None,
    timeout_seconds: float = 10,
    max_output_bytes: int = 1024 * 1024,
    address_space_mb: Optional[int] = None,
    env: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Run ``cmd`` once, bounded by wall-clock time and output size.

    The child gets its own session, and that process group is killed once the
    child has exited, so nothing it forked outlives the call. Returns a dict
    with ``stdout``, ``stderr``, ``exit_code``, ``time_ms``, ``timed_out`` and
    ``output_exceeded``. Only spawn failures and stdin that is not valid
    UTF-8 text raise.
    """
    payload = encode_text(stdin, 'stdin')
    preexec_fn = None
    if resource is not None and os.name == 'posix':
        preexec_fn = _child_limits(address_space_mb, math.ceil(timeout_seconds) + 1)

    try:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
            preexec_fn=preexec_fn,
            start_new_session=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise SandboxInfrastructureError(f'could not start {cmd[0]}: {e}') from e

    started = time.monotonic()
    capture = _OutputCapture(proc, max_output_bytes)
    threads = [
        threading.Thread(target=capture.drain, args=(proc.stdout, 'stdout'), daemon=True),
        threading.Thread(target=capture.drain, args=(proc.stderr, 'stderr'), daemon=True),
        threading.Thread(target=_feed_stdin, args=(proc.stdin, payload), daemon=True),
    ]
    for t in threads:
        t.start()

    timed_out = False
    try:
        exit_code = proc.wait(timeout=timeout_seconds)
    except subprocess.TimeoutExpired:
        timed_out = True
        logger.warning('%s exceeded %ss, killing process group %s', cmd[0], timeout_seconds, proc.pid)
        _kill(proc)
        exit_code = proc.wait()
    finally:
        # leftover members of the group still hold the output pipes open
        _kill(proc)
    elapsed_ms = int((time.monotonic() - started) * 1000)

    for t in threads:
        t.join(timeout=1)

    return {
        'stdout': _read_output(bytes(capture.buffers['stdout'])),
        'stderr': _read_output(bytes(capture.buffers['stderr'])),
        'exit_code': exit_code,
        'time_ms': elapsed_ms,
        'timed_out': timed_out,
        'output_exceeded': capture.exceeded,
    }
