# src/cloudsim/api/v1/endpoints/nodes.py
"""Storage node status for signed-in users."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from cloudsim.api.v1.dependencies import CurrentUserDep, SessionDep
from cloudsim.schemas.node import NodeResponse
from cloudsim.services.nodes import NodeSelector

router = APIRouter(prefix="/nodes", tags=["nodes"])


def get_node_selector_dep(db: SessionDep) -> NodeSelector:
    return NodeSelector(db)


NodeSelectorDep = Annotated[NodeSelector, Depends(get_node_selector_dep)]


@router.get("", response_model=list[NodeResponse])
async def list_nodes(current_user: CurrentUserDep, nodes: NodeSelectorDep) -> list[NodeResponse]:
    return [NodeResponse.model_validate(node) for node in nodes.list_nodes()]
