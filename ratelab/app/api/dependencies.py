"""Registry dependency for FastAPI dependency injection.

Usage:
    from ratelab.app.api.dependencies import RegistryDep

    @router.get("/api/config")
    async def get_config(registry: RegistryDep):
        return registry.get_all_states()
"""

from typing import Annotated

from fastapi import Depends, Request

from ratelab.app.services.registry import LimiterRegistry


def get_registry(request: Request) -> LimiterRegistry:
    """Return the registry the application was built with."""
    return request.app.state.registry


# Type alias for FastAPI dependency injection
RegistryDep = Annotated[LimiterRegistry, Depends(get_registry)]

__all__ = ["RegistryDep", "get_registry"]
