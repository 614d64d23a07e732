class SandboxError(Exception):
    pass


class UnsupportedLanguageError(SandboxError, ValueError):
    def __init__(self, language):
        self.language = language
        super().__init__(f'Unsupported language: {language}')


class InvalidSubmissionError(SandboxError, ValueError):
    pass


class SecurityViolation(SandboxError, ValueError):
    """Raised when source text matches a denylisted pattern.

    The check is textual only; it does not make the child process safe.
    """

    def __init__(self, language, pattern: str, reason: str):
        self.language = language
        self.pattern = pattern
        self.reason = reason
        super().__init__(f'Security violation detected ({reason}): {pattern}')


class SandboxInfrastructureError(SandboxError):
    """Workspace creation or process spawn failed."""


class OracleError(SandboxError):
    pass
