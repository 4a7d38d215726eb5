"""
Result Pattern Implementation
Services return a Result instead of raising for expected failures
(validation, lookups, conflicts); routes translate the error code to HTTP.
"""

from enum import Enum
from typing import TypeVar, Generic, Optional, Any, Dict, Callable
from dataclasses import dataclass

from services.enums import ErrorCode, ERROR_HTTP_STATUS

T = TypeVar('T')


@dataclass
class Result(Generic[T]):
    """
    Either a successful value or an error message plus error code.

    Examples:
        result = Result.success(referrer)
        if result.is_success:
            print(result.data.referral_code)

        result = Result.failure("Referral not found", code=ErrorCode.NOT_FOUND)
        if result.is_failure:
            print(result.error, result.http_status)
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def success(cls, data: T = None, metadata: Optional[Dict[str, Any]] = None) -> 'Result[T]':
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def failure(cls,
                error: str,
                code: Optional[Any] = None,
                metadata: Optional[Dict[str, Any]] = None) -> 'Result[T]':
        """
        Create a failure result.

        Args:
            error: Human readable message, safe to show to the caller
            code: ErrorCode (or its string value)
            metadata: Optional detail about the failure
        """
        if isinstance(code, Enum):
            code = code.value
        return cls(success=False, error=error, error_code=code, metadata=metadata)

    @property
    def is_success(self) -> bool:
        return self.success

    @property
    def is_failure(self) -> bool:
        return not self.success

    @property
    def code(self) -> Optional[str]:
        return self.error_code

    @property
    def http_status(self) -> int:
        """HTTP status matching the error code (200 for successes)."""
        if self.is_success:
            return 200
        try:
            return ERROR_HTTP_STATUS[ErrorCode(self.error_code)]
        except ValueError:
            return 500

    def unwrap(self) -> T:
        """
        Get the data from a successful result.

        Raises:
            ValueError: If called on a failure result
        """
        if self.is_failure:
            raise ValueError(f"Cannot unwrap a failure result: {self.error}")
        return self.data

    def unwrap_or(self, default: T) -> T:
        return self.data if self.is_success else default

    def map(self, func: Callable[[T], Any]) -> 'Result':
        """Transform the data of a success, pass failures through untouched."""
        if self.is_success:
            return Result.success(func(self.data), self.metadata)
        return self

    def __bool__(self) -> bool:
        return self.is_success

    def __repr__(self) -> str:
        if self.is_success:
            return f"Result.success(data={self.data!r})"
        return f"Result.failure(error={self.error!r}, code={self.error_code!r})"
