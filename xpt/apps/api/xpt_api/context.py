"""Per-request identifiers carried into every log record.

request_id is set by the request-id middleware. tenant_id and user_id are
set by the auth dependencies once the gate has resolved them, and reset by
the completion-logging middleware so nothing leaks between requests.
"""

from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
tenant_id_var: ContextVar[str] = ContextVar("tenant_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")
