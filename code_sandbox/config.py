import os
import tempfile

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_BASE_DIR = os.getenv('SANDBOX_BASE_DIR', os.path.join(tempfile.gettempdir(), 'code-sandbox'))
DEFAULT_TIMEOUT_SECONDS = float(os.getenv('SANDBOX_TIMEOUT_SECONDS', '10'))
DEFAULT_MAX_OUTPUT_BYTES = int(os.getenv('SANDBOX_MAX_OUTPUT_BYTES', str(1024 * 1024)))
DEFAULT_MEMORY_LIMIT_MB = int(os.getenv('SANDBOX_MEMORY_LIMIT_MB', '256'))
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class EngineConfig(BaseModel):
    """Limits and locations for one CodeSandbox instance."""

    model_config = ConfigDict(frozen=True)

    base_dir: str = DEFAULT_BASE_DIR
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    max_output_bytes: int = Field(default=DEFAULT_MAX_OUTPUT_BYTES, gt=0)
    memory_limit_mb: int = Field(default=DEFAULT_MEMORY_LIMIT_MB, gt=0)
