"""AI agent API endpoints."""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import and_, select

from insighter_server.api.deps import NotFoundError
from insighter_server.auth import TokenPayload, get_current_user
from insighter_server.database import AIAgent, get_db_session
from insighter_server.services.access import WORKSPACE_ADMIN_ROLES, check_workspace_access

logger = logging.getLogger(__name__)

router = APIRouter(tags=["agents"])


class AgentUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = Field(None, max_length=2048)
    status: str | None = Field(None, pattern="^(active|inactive)$")


class AgentResponse(BaseModel):
    agent_id: str
    workspace_id: str
    name: str
    description: str | None
    agent_type: str
    status: str
    config: dict[str, Any]
    created_by: str | None
    created_at: datetime
    updated_at: datetime


def _agent_response(agent: AIAgent) -> AgentResponse:
    return AgentResponse(
        agent_id=agent.agent_id,
        workspace_id=agent.workspace_id,
        name=agent.name,
        description=agent.description,
        agent_type=agent.agent_type,
        status=agent.status,
        config=json.loads(agent.config) if agent.config else {},
        created_by=agent.created_by,
        created_at=agent.created_at,
        updated_at=agent.updated_at,
    )


async def _get_agent(db, agent_id: str) -> AIAgent:
    result = await db.execute(select(AIAgent).where(AIAgent.agent_id == agent_id))
    agent = result.scalar_one_or_none()
    if agent is None:
        raise NotFoundError("agent", agent_id)
    return agent


@router.get("/workspaces/{workspace_id}/agent", response_model=AgentResponse)
async def get_workspace_agent(
    workspace_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> AgentResponse:
    """Get the active agent of a workspace."""
    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)

        result = await db.execute(
            select(AIAgent)
            .where(
                and_(
                    AIAgent.workspace_id == workspace_id,
                    AIAgent.status == "active",
                )
            )
            .order_by(AIAgent.created_at)
        )
        agent = result.scalars().first()
        if agent is None:
            raise NotFoundError("agent")
        return _agent_response(agent)


@router.get("/agents/{agent_id}", response_model=AgentResponse)
async def get_agent(
    agent_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> AgentResponse:
    """Get an agent by ID."""
    async with get_db_session() as db:
        agent = await _get_agent(db, agent_id)
        await check_workspace_access(db, agent.workspace_id, current_user.user_id)
        return _agent_response(agent)


@router.patch("/agents/{agent_id}", response_model=AgentResponse)
async def update_agent(
    agent_id: str,
    body: AgentUpdate,
    current_user: TokenPayload = Depends(get_current_user),
) -> AgentResponse:
    """Update an agent (workspace admins and organization owners)."""
    async with get_db_session() as db:
        agent = await _get_agent(db, agent_id)
        await check_workspace_access(
            db, agent.workspace_id, current_user.user_id, roles=WORKSPACE_ADMIN_ROLES
        )

        if body.name is not None:
            agent.name = body.name
        if body.description is not None:
            agent.description = body.description
        if body.status is not None:
            agent.status = body.status
        agent.updated_at = datetime.now(timezone.utc)

        await db.commit()

        logger.info(f"Updated agent {agent_id}")
        return _agent_response(agent)
