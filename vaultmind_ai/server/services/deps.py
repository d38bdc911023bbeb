"""
Assistant Dependency.

Provides the singleton ``AssistantService`` to API endpoints.
"""

from typing import Annotated

from fastapi import Depends

from vaultmind_ai.agent_core.service import AssistantService
from vaultmind_ai.server.services.assistant import get_assistant_service

AssistantServiceDep = Annotated[AssistantService, Depends(get_assistant_service)]
