"""
REST API endpoints for task management.

Every endpoint requires a bearer token, and every query is scoped to the
authenticated user: a task that belongs to somebody else answers exactly
like a task that does not exist (404).

Endpoints:
    GET    /tasks          - List tasks (filter, sort, paginate)
    GET    /tasks/<id>     - Get a single task
    POST   /tasks          - Create a task
    PATCH  /tasks/<id>     - Update description and/or completed
    DELETE /tasks/<id>     - Delete a task

Query Parameters (GET /tasks):
    completed: "true" or "false"; any other value is ignored
    sortBy:    "<field>:<asc|desc>" with field one of description,
               completed, createdAt, updatedAt; anything else is ignored
    limit:     maximum number of tasks (non-negative integer, 0 = all)
    skip:      number of tasks to skip (non-negative integer)
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, g, jsonify, request
from sqlalchemy import Select, select

from .. import db
from ..auth import require_auth
from ..errors import NotFound
from ..models import MAX_ROW_ID, Task
from ..validation import (
    TASK_UPDATE_FIELDS,
    get_json_object,
    reject_unknown_fields,
    validate_task_fields,
)

logger = logging.getLogger(__name__)

tasks_bp = Blueprint("tasks", __name__)

SORTABLE_COLUMNS = {
    "description": Task.description,
    "completed": Task.completed,
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
}
COMPLETED_FILTER_VALUES = {"true": True, "false": False}
# Ids beyond the column range cannot exist, so the router answers 404
TASK_ID_RULE = f"/<int(max={MAX_ROW_ID}):task_id>"


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _user_task_query() -> Select:
    """Base ``select`` restricted to the authenticated user's tasks."""
    return select(Task).where(Task.owner_id == g.user.id)


def _get_owned_task(task_id: int) -> Task:
    task = db.session.scalar(_user_task_query().where(Task.id == task_id))
    if task is None:
        raise NotFound("Task not found")
    return task


def _parse_sort(value: str | None):
    """
    Turn ``field:direction`` into an ORDER BY clause.

    Returns ``None`` for anything that is not a known field with an
    ``asc`` or ``desc`` direction.
    """
    if not value:
        return None
    field, _, direction = value.partition(":")
    column = SORTABLE_COLUMNS.get(field)
    if column is None or direction not in ("asc", "desc"):
        return None
    return column.desc() if direction == "desc" else column.asc()


def _parse_non_negative_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        number = int(value)
    except ValueError:
        return None
    return number if number >= 0 else None


# -----------------------------------------------------------------------------
# API Endpoints
# -----------------------------------------------------------------------------

@tasks_bp.route("", methods=["POST"])
@require_auth
def create_task() -> tuple[Response, int]:
    """
    Create a task owned by the authenticated user.

    Request Body (JSON):
        description: What needs doing (required, non-empty)
        completed: Boolean (optional, default false)

    Any other keys, including ``id`` and ``owner``, are ignored.

    Returns:
        201 with the created task; 400 if validation fails.
    """
    fields = validate_task_fields(get_json_object())

    task = Task(owner_id=g.user.id, **fields)
    db.session.add(task)
    db.session.commit()

    logger.info("Created task %s for user_id=%s", task.id, g.user.id)
    return jsonify(task.to_dict()), 201


@tasks_bp.route("", methods=["GET"])
@require_auth
def list_tasks() -> tuple[Response, int]:
    """List the authenticated user's tasks; see the module docstring for query parameters."""
    stmt = _user_task_query()

    completed = COMPLETED_FILTER_VALUES.get(request.args.get("completed", ""))
    if completed is not None:
        stmt = stmt.where(Task.completed == completed)

    order_by = _parse_sort(request.args.get("sortBy"))
    if order_by is not None:
        stmt = stmt.order_by(order_by)
    # Tie-breaker, and the only ordering when no valid sortBy was given
    stmt = stmt.order_by(Task.id)

    limit = _parse_non_negative_int(request.args.get("limit"))
    if limit:
        stmt = stmt.limit(limit)
    skip = _parse_non_negative_int(request.args.get("skip"))
    if skip:
        stmt = stmt.offset(skip)

    tasks = db.session.scalars(stmt).all()
    logger.info("Found %s tasks for user_id=%s", len(tasks), g.user.id)
    return jsonify([task.to_dict() for task in tasks]), 200


@tasks_bp.route(TASK_ID_RULE, methods=["GET"])
@require_auth
def get_task(task_id: int) -> tuple[Response, int]:
    return jsonify(_get_owned_task(task_id).to_dict()), 200


@tasks_bp.route(TASK_ID_RULE, methods=["PATCH"])
@require_auth
def update_task(task_id: int) -> tuple[Response, int]:
    """
    Update a task.

    Only ``description`` and ``completed`` may be sent.  The ownership
    check runs first, so another user's task is a 404 even when the body
    is also invalid.

    Returns:
        200 with the updated task; 400 on unknown keys or bad values;
        404 if the task is missing or not owned by the requester.
    """
    task = _get_owned_task(task_id)

    data = get_json_object()
    reject_unknown_fields(data, TASK_UPDATE_FIELDS)
    fields = validate_task_fields(data, partial=True)

    for name, value in fields.items():
        setattr(task, name, value)
    db.session.commit()

    logger.info("Updated task %s", task_id)
    return jsonify(task.to_dict()), 200


@tasks_bp.route(TASK_ID_RULE, methods=["DELETE"])
@require_auth
def delete_task(task_id: int) -> tuple[Response, int]:
    task = _get_owned_task(task_id)
    body = task.to_dict()

    db.session.delete(task)
    db.session.commit()

    logger.info("Deleted task %s", task_id)
    return jsonify(body), 200
