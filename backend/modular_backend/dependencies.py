"""FastAPI dependencies bridging routes to the service provider."""

from fastapi import Depends, Request


def get_provider(request: Request):
    """The `ServiceProvider` of the application handling `request`."""
    return request.app.state.host.provider


def service(contract: type):
    """Dependency resolving `contract` from the provider.

    Scoped services resolve against the request scope opened by the
    request middleware.
    """
    def dependency(request: Request):
        return get_provider(request).resolve(contract)

    dependency.__name__ = f"resolve_{contract.__name__}"
    return Depends(dependency)
