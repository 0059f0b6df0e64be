"""Frame controller exception hierarchy."""

STAGE_AUTHENTICATE = "authenticate"
STAGE_RESOLVE = "resolve"
STAGE_REGISTER = "register"
STAGE_SPAWN = "spawn"
STAGE_FETCH = "fetch"
STAGE_SWITCH = "switch"
STAGE_PERSIST = "persist"
STAGE_PLUGINS = "plugins"


class FrameError(Exception):
    """Base error type for all frame controller failures."""


class FrameStageError(FrameError):
    """Frame error carrying the failed stage and a stable error code."""

    def __init__(self, message: str, *, stage: str, error_code: str, cause: BaseException | None = None):
        super().__init__(message)
        self.stage = stage
        self.error_code = error_code
        self.cause = cause

    def __str__(self) -> str:
        message = super().__str__()
        if self.cause is not None and str(self.cause):
            return f"{self.stage} failed: {message}: {self.cause}"
        return f"{self.stage} failed: {message}"


class AuthenticationError(FrameStageError):
    """Raised when the credentials cannot be exchanged for an access token."""

    def __init__(self, message: str = "login rejected", *, cause: BaseException | None = None):
        super().__init__(message, stage=STAGE_AUTHENTICATE, error_code="AUTH_FAILED", cause=cause)


class ResolutionNotFoundError(FrameStageError):
    """Raised when the frame record cannot be fetched by id."""

    def __init__(self, message: str = "frame not found", *, cause: BaseException | None = None):
        super().__init__(message, stage=STAGE_RESOLVE, error_code="FRAME_NOT_FOUND", cause=cause)


class RegistrationError(FrameStageError):
    """Raised when a new frame record cannot be created."""

    def __init__(self, message: str = "frame registration failed", *, cause: BaseException | None = None):
        super().__init__(message, stage=STAGE_REGISTER, error_code="REGISTER_FAILED", cause=cause)


class SpawnError(FrameStageError):
    """Raised when a viewer process cannot be launched."""

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message, stage=STAGE_SPAWN, error_code="SPAWN_FAILED", cause=cause)


class FetchError(FrameStageError):
    """Raised when an artwork asset cannot be downloaded."""

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message, stage=STAGE_FETCH, error_code="FETCH_FAILED", cause=cause)


class SwitchInProgressError(FrameStageError):
    """Raised when a switch is started while another one is still running."""

    def __init__(self, message: str = "artwork switch already in progress"):
        super().__init__(message, stage=STAGE_SWITCH, error_code="SWITCH_IN_PROGRESS")


class ExtensionInstallError(FrameStageError):
    """Raised when the package manager fails to install an extension."""

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message, stage=STAGE_PLUGINS, error_code="EXTENSION_INSTALL_FAILED", cause=cause)


class StartupError(FrameError):
    """Fatal startup failure surfaced to whatever owns the process."""

    def __init__(self, stage: str, cause: BaseException):
        if isinstance(cause, FrameStageError):
            message = str(cause)
        else:
            message = f"{stage} failed: {cause}"
        super().__init__(message)
        self.stage = stage
        self.cause = cause
