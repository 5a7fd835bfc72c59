"""Centralized error handling and user feedback for git operations."""

import traceback
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Callable
from dataclasses import dataclass

from logging_config import get_logger
from metrics import record_error
from models import (
    CredentialError,
    GitError,
    InvalidPathError,
    MissingExecutableError,
    MissingRepositoryError,
    SpawnError,
)

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels for user feedback."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for better organization."""
    GIT_OPERATION = "git_operation"
    CREDENTIALS = "credentials"
    EXECUTABLE = "executable"
    FILE_SYSTEM = "file_system"
    CONFIGURATION = "configuration"
    NETWORK = "network"
    UNKNOWN = "unknown"


@dataclass
class ErrorInfo:
    """Structured error information."""
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    user_message: str
    context: Optional[Dict[str, Any]] = None
    exception: Optional[Exception] = None
    traceback_str: Optional[str] = None


def categorize(exception: Exception) -> ErrorCategory:
    """Map an exception onto an error category."""
    if isinstance(exception, (MissingExecutableError, SpawnError)):
        return ErrorCategory.EXECUTABLE
    if isinstance(exception, (InvalidPathError, MissingRepositoryError)):
        return ErrorCategory.FILE_SYSTEM
    if isinstance(exception, CredentialError):
        return ErrorCategory.CREDENTIALS
    if isinstance(exception, GitError):
        return ErrorCategory.GIT_OPERATION
    if isinstance(exception, OSError):
        return ErrorCategory.FILE_SYSTEM
    return ErrorCategory.UNKNOWN


class ErrorHandler:
    """Turns exceptions into logged, user-presentable ErrorInfo records."""

    def __init__(self):
        self.notification_callback: Optional[Callable[[ErrorInfo], None]] = None

    def set_notification_callback(self, callback: Optional[Callable[[ErrorInfo], None]]):
        """Set callback function for user notifications."""
        self.notification_callback = callback
        logger.debug("Error notification callback registered")

    def handle_error(
        self,
        exception: Exception,
        category: Optional[ErrorCategory] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> ErrorInfo:
        """Handle an error with logging, metrics and user notification."""
        category = category or categorize(exception)
        tb = exception.__traceback__
        traceback_str = "".join(traceback.format_exception(type(exception), exception, tb)) if tb else None

        error_info = ErrorInfo(
            category=category,
            severity=severity,
            message=str(exception),
            user_message=user_message or self._generate_user_message(exception, category),
            context=context or {},
            exception=exception,
            traceback_str=traceback_str
        )

        self._log_error(error_info)
        record_error(
            error_type=f"{category.value}_{type(exception).__name__}",
            error_message=error_info.message,
            context={"severity": severity.value, **error_info.context},
        )

        if self.notification_callback:
            try:
                self.notification_callback(error_info)
            except Exception as e:
                logger.error(f"Error in notification callback: {e}")

        return error_info

    def handle_git_error(
        self,
        exception: Exception,
        operation: str,
        repo_path: Optional[Path | str] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR
    ) -> ErrorInfo:
        """Handle git errors with the operation and repository as context."""
        context = {
            "operation": operation,
            "repo_path": str(repo_path) if repo_path else None
        }
        category = categorize(exception)
        return self.handle_error(
            exception=exception,
            category=category,
            severity=severity,
            user_message=self._generate_git_user_message(exception, operation),
            context=context
        )

    def _log_error(self, error_info: ErrorInfo):
        """Log error information appropriately based on severity."""
        log_message = f"[{error_info.category.value}] {error_info.message}"

        if error_info.context:
            log_message += f" | Context: {error_info.context}"

        if error_info.severity == ErrorSeverity.CRITICAL:
            logger.critical(log_message, exc_info=error_info.exception)
        elif error_info.severity == ErrorSeverity.ERROR:
            logger.error(log_message)
        elif error_info.severity == ErrorSeverity.WARNING:
            logger.warning(log_message)
        else:
            logger.info(log_message)

    def _generate_user_message(self, exception: Exception, category: ErrorCategory) -> str:
        """Generate user-friendly error message."""
        if category == ErrorCategory.GIT_OPERATION:
            return f"Git operation failed: {exception}"
        elif category == ErrorCategory.CREDENTIALS:
            return f"Credential error: {exception}"
        elif category == ErrorCategory.EXECUTABLE:
            return f"Could not run git: {exception}"
        elif category == ErrorCategory.FILE_SYSTEM:
            return f"File system error: {exception}"
        elif category == ErrorCategory.CONFIGURATION:
            return f"Configuration error: {exception}"
        elif category == ErrorCategory.NETWORK:
            return f"Network error: {exception}"
        else:
            return f"An unexpected error occurred: {exception}"

    def _generate_git_user_message(self, exception: Exception, operation: str) -> str:
        """Generate user-friendly git error message."""
        if isinstance(exception, MissingExecutableError):
            return "Git could not be found. Install git or set its location in the settings."
        if isinstance(exception, SpawnError):
            return f"Git could not be started for '{operation}'. Check the configured git executable."
        if isinstance(exception, (InvalidPathError, MissingRepositoryError)):
            return f"The selected path cannot be used for '{operation}': {exception}"

        error_msg = str(exception).lower()
        if "not a git repository" in error_msg:
            return "The selected directory is not a Git repository. Please choose a valid Git repository."
        elif "authentication failed" in error_msg or "could not read username" in error_msg:
            return f"Authentication failed during '{operation}'. Check your credentials."
        elif "permission denied" in error_msg:
            return f"Permission denied while performing Git operation '{operation}'."
        elif "could not resolve host" in error_msg or "connection" in error_msg:
            return f"Network error during Git operation '{operation}'. Check your internet connection."
        else:
            return f"Git operation '{operation}' failed: {exception}"


def error_response(exception: Exception) -> Dict[str, str]:
    """Wire shape for a failed request: ``{"message": ...}``."""
    return {"message": str(exception)}


# Global error handler instance
_error_handler = ErrorHandler()


def handle_git_error(
    exception: Exception,
    operation: str,
    repo_path: Optional[Path | str] = None,
    severity: ErrorSeverity = ErrorSeverity.ERROR
) -> ErrorInfo:
    """Convenience function to handle git errors."""
    return _error_handler.handle_git_error(exception, operation, repo_path, severity)
