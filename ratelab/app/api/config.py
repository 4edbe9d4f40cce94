"""Config surface: hot-update a limiter and read every limiter's state."""

from typing import Any, Dict, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from ratelab.app.api.dependencies import RegistryDep
from ratelab.app.exceptions import InvalidConfigError

router = APIRouter(prefix="/api/config", tags=["config"])


class ConfigUpdateRequest(BaseModel):
    """Body of a config update; ``config`` holds camelCase limiter fields."""

    algo: Optional[str] = None
    config: Optional[Dict[str, Any]] = None


@router.post("")
async def update_config(body: ConfigUpdateRequest, registry: RegistryDep) -> Dict[str, Any]:
    """Merge a partial config into a running limiter.

    Unknown algorithms are accepted; the result reports them as not applied.
    """
    if not body.algo or body.config is None:
        raise InvalidConfigError()
    result = await registry.update_config(body.algo, body.config)
    return {
        "ok": True,
        "result": result.to_dict(),
        "states": registry.get_all_states(),
    }


@router.get("")
async def get_config(registry: RegistryDep) -> Dict[str, Any]:
    """Snapshot of all limiters, keyed by algorithm name."""
    return registry.get_all_states()
