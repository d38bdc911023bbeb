"""
Health Check Endpoints.

Basic status endpoints used for monitoring and deployment verification. The
health check also reports the generation circuit's state.
"""

from fastapi import APIRouter

from vaultmind_ai.agent_core.factory import GENERATION_CIRCUIT
from vaultmind_ai.agent_core.resilience import CircuitState, get_circuit_breaker

router = APIRouter()


@router.get(
    "/health",
    summary="Health Check",
    description="Check the operational status of the API server.",
    response_description="Status object.",
)
async def health_check():
    """
    Health check endpoint.

    Reports ``degraded`` while the generation circuit is not closed.
    """
    circuit = get_circuit_breaker(GENERATION_CIRCUIT).snapshot()
    status = "ok" if circuit.state is CircuitState.closed else "degraded"
    return {"status": status, "generation_circuit": circuit.state.value}


@router.get(
    "/version",
    summary="Get Version",
    description="Retrieve version information for the API server.",
    response_description="Version object.",
)
async def version():
    return {"version": "0.1.0", "schema_version": "v1"}
