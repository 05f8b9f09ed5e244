import contextvars
import uuid


_request_context: contextvars.ContextVar[dict] = contextvars.ContextVar(
    "request_context",
    default={},
)


def set_request_context(**kwargs: str) -> None:
    current = _request_context.get({}).copy()
    current.update({k: v for k, v in kwargs.items() if v})
    _request_context.set(current)


def clear_request_context() -> None:
    _request_context.set({})


def new_request_id() -> str:
    return uuid.uuid4().hex


class RequestContextFilter:
    """Stamps request and quote identifiers onto every record for the console format."""

    def filter(self, record) -> bool:  # noqa: ANN001
        context = _request_context.get({})
        record.request_id = context.get("request_id", "-")
        record.quote_id = getattr(record, "quote_id", None) or context.get("quote_id", "-")
        record.package_id = getattr(record, "package_id", None) or context.get("package_id", "-")
        return True
