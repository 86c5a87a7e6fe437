"""Per-request scope carried in a context variable.

The HTTP middleware opens a scope for every request; services reach the
current request, database session, claims and tenant through it. Starlette
copies the context into the task and thread running the endpoint, so values
set before the endpoint runs are visible there.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional
from uuid import UUID

from .contracts import ScopeError

_current: contextvars.ContextVar[Optional["RequestScope"]] = contextvars.ContextVar("request_scope", default=None)


@dataclass
class RequestScope:
    request: Any = None
    db_session: Any = None
    claims: Optional[Dict[str, Any]] = None
    tenant_id: Optional[UUID] = None
    items: Dict[str, Any] = field(default_factory=dict)
    instances: Dict[type, Any] = field(default_factory=dict)


@contextmanager
def request_scope(request=None, db_session=None, claims=None, tenant_id=None) -> Iterator[RequestScope]:
    """Open a request scope for the duration of the `with` block."""
    scope = RequestScope(request=request, db_session=db_session, claims=claims, tenant_id=tenant_id)
    token = _current.set(scope)
    try:
        yield scope
    finally:
        _current.reset(token)


def current_scope() -> RequestScope:
    scope = _current.get()
    if scope is None:
        raise ScopeError("no active request scope; this service is only available while handling a request")
    return scope


def try_current_scope() -> Optional[RequestScope]:
    return _current.get()


def current_db_session():
    session = current_scope().db_session
    if session is None:
        raise ScopeError("the active request scope has no database session")
    return session


def current_request():
    return current_scope().request
