"""
Helpers for plugin integration tests.

Inside the integration scope the host runtime's test client cannot
resolve a plugin's custom URLs, so a plugin test never goes through
URL routing.  It builds a request, attaches a user, and calls the
handler itself:

    from pluginctl.testkit import authenticated_request, call_handler

    request = authenticated_request(RequestFactory(), "get", "/plugins/widget/", user)
    response = call_handler(WidgetListView, request)
    assert response.status_code == 200

Nothing here imports the host framework; the request factory and the
user object are whatever the host provides.
"""

from __future__ import annotations

from typing import Any, Callable


def authenticated_request(factory: Any, method: str, path: str, user: Any, **kwargs: Any) -> Any:
    """Build a request with ``factory.<method>(path, **kwargs)`` and attach ``user``."""
    build = getattr(factory, method.lower(), None)
    if build is None:
        raise ValueError(f"request factory has no {method.lower()}() method")
    request = build(path, **kwargs)
    request.user = user
    return request


def as_callable(handler: Any, **initkwargs: Any) -> Callable[..., Any]:
    """A plain callable for a function handler or a class exposing ``as_view()``."""
    if isinstance(handler, type) and hasattr(handler, "as_view"):
        return handler.as_view(**initkwargs)
    if callable(handler):
        return handler
    raise TypeError(f"{handler!r} is not a request handler")


def call_handler(handler: Any, request: Any, *args: Any, **kwargs: Any) -> Any:
    """Invoke ``handler`` directly with ``request``, bypassing URL routing."""
    return as_callable(handler)(request, *args, **kwargs)
