from __future__ import annotations

from typing import Any


class QuotePriceError(Exception):
    code = "QUOTE_PRICE_ERROR"
    is_retryable = False

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        is_retryable: bool | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if is_retryable is not None:
            self.is_retryable = is_retryable
        self.context = context or {}

    def as_payload(self) -> dict[str, Any]:
        return {"errorCode": self.code, "message": self.message}


class InvalidParametersError(QuotePriceError):
    code = "INVALID_PARAMETERS"

    def __init__(self, message: str, *, field_errors: dict[str, str] | None = None) -> None:
        super().__init__(message, context={"field_errors": dict(field_errors or {})})
        self.field_errors = dict(field_errors or {})


class PackageNotFoundError(QuotePriceError):
    code = "PACKAGE_NOT_FOUND"

    def __init__(self, package_id: str, version: int | None = None) -> None:
        if version is None:
            message = f'Package "{package_id}" not found or has been deleted'
        else:
            message = f'Package "{package_id}" version {version} not found'
        super().__init__(message, context={"package_id": str(package_id), "version": version})
        self.package_id = str(package_id)
        self.version = version


class PackageInactiveError(QuotePriceError):
    code = "PACKAGE_INACTIVE"

    def __init__(self, package_id: str, status: str) -> None:
        super().__init__(
            f"The package is {status} and cannot be linked",
            context={"package_id": str(package_id), "status": status},
        )
        self.status = status


class PackageDataError(QuotePriceError):
    """Package content is structurally broken (not just incomplete coverage)."""

    code = "PACKAGE_DATA_ERROR"


class PackageStoreUnavailableError(QuotePriceError):
    code = "PACKAGE_STORE_UNAVAILABLE"
    is_retryable = True


class NoLinkedPackageError(QuotePriceError):
    code = "NO_LINKED_PACKAGE"

    def __init__(self, message: str = "This quote is not linked to a package") -> None:
        super().__init__(message)


class CalculationTimeoutError(QuotePriceError):
    code = "CALCULATION_TIMEOUT"
    is_retryable = True

    def __init__(self, timeout_seconds: float) -> None:
        timeout_ms = int(timeout_seconds * 1000)
        super().__init__(f"Price calculation timed out after {timeout_ms}ms", context={"timeout_ms": timeout_ms})
        self.timeout_ms = timeout_ms
