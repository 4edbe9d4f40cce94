"""Request-path endpoints: one decision per POST, state snapshot per GET."""

import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from ratelab.app.api.dependencies import RegistryDep
from ratelab.app.exceptions import UnknownAlgorithmError
from ratelab.app.limiters.models import Algorithm

router = APIRouter(prefix="/api", tags=["limiters"])


class AdmitRequest(BaseModel):
    """Optional body of a decision request."""

    model_config = ConfigDict(populate_by_name=True)

    request_id: Optional[str] = Field(None, alias="requestId", max_length=128)
    client_id: Optional[str] = Field(None, alias="clientId", max_length=256)


def make_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def _resolve(algorithm: str) -> Algorithm:
    algo = Algorithm.parse(algorithm)
    if algo is None:
        raise UnknownAlgorithmError(algorithm)
    return algo


@router.post("/{algorithm}")
async def admit(
    algorithm: str,
    registry: RegistryDep,
    body: Optional[AdmitRequest] = None,
) -> Dict[str, Any]:
    """Run one admission decision and return the Decision-Result."""
    algo = _resolve(algorithm)
    body = body or AdmitRequest()
    result = await registry.admit(
        algo,
        body.request_id or make_request_id(),
        client_id=body.client_id or None,
    )
    return result.to_dict()


@router.get("/{algorithm}")
async def get_state(algorithm: str, registry: RegistryDep) -> Dict[str, Any]:
    """Read-only snapshot of one limiter."""
    algo = _resolve(algorithm)
    return registry.get_state(algo).to_dict()
