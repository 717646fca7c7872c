"""
Error definitions for Actionstack

Structured exceptions carrying an error code and context data. Recoverable
misuse (bad payloads, failing thunks, invalid bind arguments) is logged rather
than raised; these exceptions cover the cases that must reach the caller.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for the dispatch engine"""

    # Configuration Errors (1000-1999)
    INVALID_CONFIGURATION = "AS1001"
    UNKNOWN_STRATEGY = "AS1002"
    REDUCER_NOT_FOUND = "AS1003"

    # Module Errors (2000-2999)
    MODULE_LOAD_FAILED = "AS2001"
    INVALID_STATE_SHAPE = "AS2002"

    # Execution Errors (3000-3999)
    ACTION_REJECTED = "AS3001"


class ActionstackError(Exception):
    """Base exception for Actionstack with structured error information"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_CONFIGURATION,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary"""
        return {
            "code": self.code.value,
            "message": self.message,
            "data": self.data,
        }


class ConfigurationError(ActionstackError):
    """Raised when store or runtime configuration is invalid"""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_CONFIGURATION,
                 data: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, data=data)


class ModuleLoadError(ActionstackError):
    """Raised when a feature module cannot be attached to the store"""

    def __init__(self, slice_name: str, reason: str,
                 code: ErrorCode = ErrorCode.MODULE_LOAD_FAILED,
                 data: Optional[Dict[str, Any]] = None):
        self.slice_name = slice_name
        super().__init__(
            f"Failed to load module '{slice_name}': {reason}",
            code=code,
            data={"slice": slice_name, **(data or {})},
        )


class ActionRejectedError(ActionstackError):
    """Raised by an awaited action that was rejected with a non-exception reason"""

    def __init__(self, action_type: str, reason: Any):
        self.action_type = action_type
        self.reason = reason
        super().__init__(
            f"Action '{action_type}' was rejected: {reason!r}",
            code=ErrorCode.ACTION_REJECTED,
            data={"type": action_type},
        )
