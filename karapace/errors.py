"""Exceptions raised by the runtime layer."""


class KarapaceRuntimeError(Exception):
    """Base class for every runtime failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ExecFailedError(KarapaceRuntimeError):
    """A command, build step or container session failed."""


class BackendUnavailableError(KarapaceRuntimeError):
    """The requested runtime backend cannot be used on this host."""


class MountDeniedError(KarapaceRuntimeError):
    """A requested mount is not permitted by the security policy."""


class DeviceDeniedError(KarapaceRuntimeError):
    """A requested device is not permitted by the security policy."""


class PolicyViolationError(KarapaceRuntimeError):
    """A request exceeds a limit set by the security policy."""