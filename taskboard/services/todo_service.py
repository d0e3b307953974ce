from datetime import datetime, timezone
from typing import Any, Mapping

from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.exceptions import NotFound
from taskboard.core.policy import assert_can_access
from taskboard.models import Claims, Todo, TodoCreate, TodoPage, TodoRead, TodoUpdate
from taskboard.query.composer import (
    TODO_QUERY,
    build_filter,
    build_spec,
    filters_meta,
    page_meta,
    paginate,
)

import logging

logger = logging.getLogger(__name__)

TODO_NOT_FOUND = "Todo not found"


class TodoService:
    @staticmethod
    async def create_todo(owner: Claims, todo_data: TodoCreate, db: AsyncSession):
        todo = Todo(
            title=todo_data.title,
            description=todo_data.description,
            is_done=todo_data.is_done,
            # ownership always comes from the authenticated identity
            owner_id=owner.id,
        )
        db.add(todo)
        await db.commit()
        await db.refresh(todo)
        logger.info(f"Todo {todo.id} created by user {owner.id}")
        return todo

    @staticmethod
    async def list_todos(
        requester: Claims, raw: Mapping[str, Any], db: AsyncSession
    ) -> TodoPage:
        spec = build_spec(raw, TODO_QUERY)
        where = build_filter(spec, TODO_QUERY, requester)
        todos, total = await paginate(db, TODO_QUERY, spec, where)
        return TodoPage(
            todos=[TodoRead.model_validate(todo) for todo in todos],
            pagination=page_meta(spec.page, spec.limit, total),
            filters=filters_meta(spec),
        )

    @staticmethod
    async def _load_accessible(todo_id: int, requester: Claims, db: AsyncSession) -> Todo:
        todo = await db.get(Todo, todo_id)
        if not todo:
            raise NotFound(TODO_NOT_FOUND)
        assert_can_access(todo.owner_id, requester)
        return todo

    @staticmethod
    async def get_todo(todo_id: int, requester: Claims, db: AsyncSession):
        return await TodoService._load_accessible(todo_id, requester, db)

    @staticmethod
    async def update_todo(
        todo_id: int, requester: Claims, todo_data: TodoUpdate, db: AsyncSession
    ):
        todo = await TodoService._load_accessible(todo_id, requester, db)
        # fields absent from the request keep their value
        update_data = todo_data.model_dump(exclude_unset=True)
        todo.sqlmodel_update(update_data)
        todo.updated_at = datetime.now(timezone.utc)
        db.add(todo)
        await db.commit()
        await db.refresh(todo)
        return todo

    @staticmethod
    async def delete_todo(todo_id: int, requester: Claims, db: AsyncSession):
        todo = await TodoService._load_accessible(todo_id, requester, db)
        await db.delete(todo)
        await db.commit()
        logger.info(f"Todo {todo_id} deleted by user {requester.id}")
        return {"deleted": True}
