"""CRUD routers for the CRM entities.

Every entity gets the same five endpoints from build_entity_router():

- GET    /{entity}       search (query string validated by the entity's search schema)
- GET    /{entity}/{id}  fetch one
- POST   /{entity}       create (201)
- PUT    /{entity}/{id}  partial update
- DELETE /{entity}/{id}  soft delete

Only the role sets and the EntityResource differ between entities.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Request, status

from kpcrm_api.auth.roles import ADMIN_OR_MANAGER, ANY_ROLE, WRITER_ROLES
from kpcrm_api.auth.session_auth import AuthContext, optional_auth, require_role
from kpcrm_api.repositories.table_repository import (
    CONTACTS,
    INTERACTIONS,
    OPPORTUNITIES,
    ORGANIZATIONS,
    PRODUCTS,
    EntityResource,
    TableRepository,
)
from kpcrm_api.responses import success_body
from kpcrm_api.routers.deps import (
    get_data_client,
    query_params,
    read_json_body,
    require_uuid,
    validated,
)
from kpcrm_api.schemas import COMMON_ERROR_RESPONSES, SuccessResponse

logger = logging.getLogger(__name__)


def build_entity_router(
    resource: EntityResource,
    *,
    prefix: str,
    tag: str,
    read_roles: frozenset[str] = ANY_ROLE,
    write_roles: frozenset[str] = WRITER_ROLES,
    delete_roles: frozenset[str] = ADMIN_OR_MANAGER,
    public_read: bool = False,
    creator: Optional[Callable[[TableRepository, dict[str, Any]], dict[str, Any]]] = None,
) -> APIRouter:
    """Build the CRUD router for one entity.

    Args:
        resource: Table + search description for the entity
        prefix: URL prefix ("/organizations")
        tag: OpenAPI tag
        read_roles / write_roles / delete_roles: Role sets for the role gate
        public_read: Reads use optional authentication instead of read_roles
        creator: Replaces TableRepository.create for entities that need more
            than an insert (users are also registered with the identity provider)
    """
    router = APIRouter(
        prefix=prefix,
        tags=[tag],
        responses={200: {"model": SuccessResponse}, **COMMON_ERROR_RESPONSES},
    )
    entity = resource.entity

    read_guard = Depends(optional_auth) if public_read else Depends(require_role(*read_roles))
    write_guard = require_role(*write_roles)
    delete_guard = require_role(*delete_roles)

    def get_repository(request: Request) -> TableRepository:
        return TableRepository(get_data_client(request), resource)

    @router.get("", dependencies=[read_guard])
    async def search_records(
        request: Request, repo: TableRepository = Depends(get_repository)
    ) -> dict[str, Any]:
        criteria = validated(entity, "search", query_params(request))
        page = await asyncio.to_thread(repo.search, criteria)
        return success_body(page.items, page.pagination())

    @router.get("/{record_id}", dependencies=[read_guard])
    async def get_record(
        record_id: str, repo: TableRepository = Depends(get_repository)
    ) -> dict[str, Any]:
        record = await asyncio.to_thread(repo.get, require_uuid(record_id))
        return success_body(record)

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_record(
        request: Request,
        auth: AuthContext = Depends(write_guard),
        repo: TableRepository = Depends(get_repository),
    ) -> dict[str, Any]:
        payload = validated(entity, "create", await read_json_body(request))
        if creator is None:
            record = await asyncio.to_thread(repo.create, payload)
        else:
            record = await asyncio.to_thread(creator, repo, payload)
        logger.info(
            f"{entity}.created",
            extra={"event": f"{entity}.created", "record_id": record.get("id"), "actor_id": auth.user_id},
        )
        return success_body(record)

    @router.put("/{record_id}")
    async def update_record(
        record_id: str,
        request: Request,
        auth: AuthContext = Depends(write_guard),
        repo: TableRepository = Depends(get_repository),
    ) -> dict[str, Any]:
        require_uuid(record_id)
        payload = validated(entity, "update", await read_json_body(request))
        record = await asyncio.to_thread(repo.update, record_id, payload)
        return success_body(record)

    @router.delete("/{record_id}")
    async def delete_record(
        record_id: str,
        auth: AuthContext = Depends(delete_guard),
        repo: TableRepository = Depends(get_repository),
    ) -> dict[str, Any]:
        await asyncio.to_thread(repo.soft_delete, require_uuid(record_id))
        logger.info(
            f"{entity}.deleted",
            extra={"event": f"{entity}.deleted", "record_id": record_id, "actor_id": auth.user_id},
        )
        return success_body({"id": record_id, "deleted": True})

    return router


organizations = build_entity_router(ORGANIZATIONS, prefix="/organizations", tag="organizations")
contacts = build_entity_router(CONTACTS, prefix="/contacts", tag="contacts")
interactions = build_entity_router(INTERACTIONS, prefix="/interactions", tag="interactions")
opportunities = build_entity_router(OPPORTUNITIES, prefix="/opportunities", tag="opportunities")
products = build_entity_router(
    PRODUCTS,
    prefix="/products",
    tag="products",
    write_roles=ADMIN_OR_MANAGER,
    public_read=True,
)
