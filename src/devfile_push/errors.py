"""Error taxonomy for component push, test, exec, log and delete flows."""

from __future__ import annotations


class DevfilePushError(Exception):
    """Base class for all errors raised by devfile-push."""


class ValidationError(DevfilePushError):
    """Invalid resource name or missing/invalid command binding. Raised before any mutation."""


class NoValidContainersError(ValidationError):
    """The devfile declares no container components."""

    def __init__(self) -> None:
        super().__init__("No valid components found in the devfile")


class NotFoundError(DevfilePushError):
    """No workload or pod exists for the component."""


class PodNotFoundError(NotFoundError):
    """No pod matches the component selector."""

    def __init__(self, selector: str) -> None:
        self.selector = selector
        super().__init__(f"pod not found for the selector: {selector}")


class PodNotRunningError(DevfilePushError):
    """The component pod exists but is not in the Running phase."""

    def __init__(self, message: str, phase: str | None) -> None:
        self.phase = phase
        super().__init__(f"{message}. current status={phase}")


class AuthorizationError(DevfilePushError):
    """Insufficient permissions to query the component's resources."""


class WaitTimeoutError(DevfilePushError):
    """A cluster-side wait (pod running, deployment rollout) did not complete in time."""


class ClusterMutationError(DevfilePushError):
    """Creating, updating or deleting a cluster resource failed."""

    def __init__(self, resource: str, operation: str, reason: str) -> None:
        self.resource = resource
        self.operation = operation
        super().__init__(f"unable to {operation} {resource}: {reason}")


class MissingBoundSecretError(DevfilePushError):
    """A linked ServiceBinding has not produced a secret yet."""

    def __init__(self, link: str) -> None:
        self.link = link
        super().__init__(f"unable to find secret in ServiceBinding {link}")


class SyncTargetMissingError(DevfilePushError):
    """No container in the pod mounts the project sources."""

    def __init__(self) -> None:
        super().__init__(
            "In order to sync files, at least one component in the devfile must set 'mountSources: true'"
        )


class SupervisorProgramMissingError(DevfilePushError):
    """The supervisord status output has no entry for the expected program."""

    def __init__(self, program: str) -> None:
        self.program = program
        super().__init__(f"the supervisord program {program} not found")


class CommandExecutionError(DevfilePushError):
    """A devfile command or exec session failed (non-zero exit or transport error)."""

    def __init__(self, command_id: str, message: str, exit_code: int | None = None) -> None:
        self.command_id = command_id
        self.exit_code = exit_code
        super().__init__(f"command {command_id!r} failed: {message}")
