"""
stateform Core Exceptions

Exception hierarchy for graph building, planning and apply-time failures,
with error codes and actionable guidance for users.
"""

from typing import Optional, List, Dict, Any


class StateformError(Exception):
    """
    Base exception for all stateform errors.

    Carries an error code, a user-facing hint and a context dict that
    the CLI and the logs can render.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        guidance: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.guidance = guidance
        self.context = context or {}

    def __str__(self):
        result = self.message
        if self.error_code:
            result = f"[{self.error_code}] {result}"
        if self.guidance:
            result += f"\nHint: {self.guidance}"
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/debugging"""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "guidance": self.guidance,
            "context": self.context
        }


class ValidationError(StateformError):
    """Malformed desired-state documents or resource attributes"""

    def __init__(
        self,
        message: str,
        resource_name: Optional[str] = None,
        validation_errors: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        if resource_name:
            self.context["resource_name"] = resource_name
        if validation_errors:
            self.context["validation_errors"] = validation_errors


class ConfigurationError(StateformError):
    """Errors related to stateform configuration"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_file: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        if config_key:
            self.context["config_key"] = config_key
        if config_file:
            self.context["config_file"] = config_file


class GraphError(StateformError):
    """Errors raised while building the resource graph. Always fatal."""


class CycleDetected(GraphError):
    """Dependency or ordering edges form a cycle"""

    def __init__(self, cycle: List[str], **kwargs):
        chain = " -> ".join(cycle)
        kwargs.setdefault("error_code", "CYCLE_DETECTED")
        kwargs.setdefault(
            "guidance",
            "Remove one of the references or 'after' entries along the cycle."
        )
        super().__init__(f"Dependency cycle detected: {chain}", **kwargs)
        self.cycle = cycle
        self.context["cycle"] = cycle


class UnresolvedReference(GraphError):
    """A resource references a logical name absent from the document"""

    def __init__(self, resource_name: str, reference: str, attribute: Optional[str] = None, **kwargs):
        where = f" in attribute '{attribute}'" if attribute else ""
        kwargs.setdefault("error_code", "UNRESOLVED_REFERENCE")
        kwargs.setdefault("guidance", "Check the spelling of the referenced resource name.")
        super().__init__(
            f"Resource '{resource_name}' references unknown resource '{reference}'{where}",
            **kwargs
        )
        self.resource_name = resource_name
        self.reference = reference
        self.context.update({"resource_name": resource_name, "reference": reference})
        if attribute:
            self.context["attribute"] = attribute


class ProviderError(StateformError):
    """
    A cloud provider call failed.

    ``retryable`` tells the executor whether the same call may succeed
    if attempted again (throttling, transient conflicts).
    """

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        provider_id: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.retryable = retryable
        self.context["retryable"] = retryable
        if provider_id:
            self.context["provider_id"] = provider_id
        if operation:
            self.context["operation"] = operation


class BlockedByFailure(StateformError):
    """Recorded for a node whose dependency failed; the node never ran"""

    def __init__(self, resource_name: str, failed_dependency: str, **kwargs):
        kwargs.setdefault("error_code", "BLOCKED_BY_FAILURE")
        super().__init__(
            f"Resource '{resource_name}' skipped: dependency '{failed_dependency}' did not succeed",
            **kwargs
        )
        self.failed_dependency = failed_dependency
        self.context.update({"resource_name": resource_name, "failed_dependency": failed_dependency})


class Cancelled(StateformError):
    """Recorded for a node that was never scheduled because the apply was cancelled"""

    def __init__(self, resource_name: str, **kwargs):
        kwargs.setdefault("error_code", "CANCELLED")
        super().__init__(f"Resource '{resource_name}' not applied: run cancelled", **kwargs)
        self.context["resource_name"] = resource_name


class StateStoreError(StateformError):
    """Errors reading or writing applied state"""

    def __init__(
        self,
        message: str,
        resource_name: Optional[str] = None,
        backend: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        if resource_name:
            self.context["resource_name"] = resource_name
        if backend:
            self.context["backend"] = backend


# Common error factories with helpful guidance
def unknown_kind_error(resource_name: str, kind: str, known_kinds: List[str]) -> ValidationError:
    """Factory for resources declaring a kind with no registered schema"""
    known = ", ".join(sorted(known_kinds)) if known_kinds else "None"
    return ValidationError(
        f"Resource '{resource_name}' has unknown kind '{kind}'",
        resource_name=resource_name,
        error_code="UNKNOWN_KIND",
        guidance=f"Known kinds: {known}. Register custom kinds with register_kind().",
        context={"kind": kind}
    )


def missing_attributes_error(resource_name: str, kind: str, missing: List[str]) -> ValidationError:
    """Factory for resources missing required schema attributes"""
    return ValidationError(
        f"Resource '{resource_name}' ({kind}) is missing required attributes: {', '.join(missing)}",
        resource_name=resource_name,
        validation_errors=[f"missing '{name}'" for name in missing],
        error_code="MISSING_ATTRIBUTES",
        guidance="Add the listed attributes to the resource's 'attributes' block."
    )


def undefined_variable_error(resource_name: str, variable: str) -> ValidationError:
    """Factory for ${var.x} references to undeclared variables"""
    return ValidationError(
        f"Resource '{resource_name}' uses undefined variable '{variable}'",
        resource_name=resource_name,
        error_code="UNDEFINED_VARIABLE",
        guidance="Declare the variable under the top-level 'variables' mapping.",
        context={"variable": variable}
    )


def configuration_invalid_error(key: str, value: Any, expected: str) -> ConfigurationError:
    """Factory for invalid configuration errors"""
    return ConfigurationError(
        f"Invalid configuration for '{key}': got {value!r}, expected {expected}",
        config_key=key,
        error_code="INVALID_CONFIGURATION",
        guidance=f"Update configuration with a valid {expected} value."
    )


def handle_stateform_error(error: StateformError, logger=None) -> None:
    """Log a stateform error with its context"""
    if logger:
        logger.error(f"stateform error: {error.message}")
        if error.context:
            logger.debug(f"Error context: {error.context}")
