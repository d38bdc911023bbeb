import pytest

from vaultmind_ai.agent_core.factory import GENERATION_CIRCUIT
from vaultmind_ai.agent_core.resilience import CircuitBreakerConfig, get_circuit_breaker


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "generation_circuit": "closed"}


@pytest.mark.asyncio
async def test_health_degraded_while_generation_circuit_open(client):
    breaker = get_circuit_breaker(GENERATION_CIRCUIT, CircuitBreakerConfig(failure_threshold=1))

    async def boom():
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        await breaker.execute(boom)

    response = await client.get("/health")
    assert response.json() == {"status": "degraded", "generation_circuit": "open"}


@pytest.mark.asyncio
async def test_version(client):
    response = await client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": "0.1.0", "schema_version": "v1"}
