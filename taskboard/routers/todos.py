from fastapi import APIRouter, Depends, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.exceptions import BadRequest
from taskboard.database import get_db
from taskboard.deps import CurrentUser
from taskboard.models import TodoCreate, TodoPage, TodoRead, TodoUpdate
from taskboard.services.todo_service import TodoService
from taskboard.validation import TodoListParams, validate

router = APIRouter(prefix="/todos", tags=["todos"])


@router.post("/", response_model=TodoRead, status_code=status.HTTP_201_CREATED)
async def create_todo(
    todo_data: TodoCreate, user: CurrentUser, db: AsyncSession = Depends(get_db)
):
    """Create a new todo owned by the caller"""
    return await TodoService.create_todo(user, todo_data, db)


@router.get("/", response_model=TodoPage)
async def get_todos(request: Request, user: CurrentUser, db: AsyncSession = Depends(get_db)):
    params, errors = validate(TodoListParams, request.query_params)
    if errors:
        raise BadRequest("Validation failed", details=[e.as_dict() for e in errors])
    return await TodoService.list_todos(user, params.to_raw(), db)


@router.get("/{todo_id}", response_model=TodoRead)
async def get_todo(todo_id: int, user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """Get a specific todo by ID"""
    return await TodoService.get_todo(todo_id, user, db)


@router.patch("/{todo_id}", response_model=TodoRead)
async def update_todo(
    todo_id: int,
    todo_data: TodoUpdate,
    user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    return await TodoService.update_todo(todo_id, user, todo_data, db)


@router.delete("/{todo_id}")
async def delete_todo(todo_id: int, user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """Delete a todo"""
    return await TodoService.delete_todo(todo_id, user, db)
