"""
Filter expressions for list queries.

Filters are built as a small tagged tree and only turned into SQLAlchemy
clauses by ``to_sqlalchemy``. Conjunction and disjunction are always
explicit nodes; a sequence of clauses is never read as an implicit OR.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from sqlalchemy import and_, or_


class Op(str, Enum):
    EQ = "eq"
    CONTAINS = "contains"
    BETWEEN = "between"


@dataclass(frozen=True)
class Comparison:
    field: str
    op: Op
    value: Any


@dataclass(frozen=True)
class And:
    operands: tuple


@dataclass(frozen=True)
class Or:
    operands: tuple


Expr = Union[Comparison, And, Or]


def eq(field: str, value: Any) -> Comparison:
    return Comparison(field, Op.EQ, value)


def contains(field: str, value: str) -> Comparison:
    return Comparison(field, Op.CONTAINS, value)


def between(field: str, lower: Any, upper: Any) -> Comparison:
    """Inclusive on both ends."""
    return Comparison(field, Op.BETWEEN, (lower, upper))


def conjoin(*exprs: Expr | None) -> Expr | None:
    """AND together the given expressions, flattening nested ANDs."""
    operands: list = []
    for expr in exprs:
        if expr is None:
            continue
        if isinstance(expr, And):
            operands.extend(expr.operands)
        else:
            operands.append(expr)
    if not operands:
        return None
    if len(operands) == 1:
        return operands[0]
    return And(tuple(operands))


def disjoin(*exprs: Expr | None) -> Expr | None:
    """OR together the given expressions, flattening nested ORs."""
    operands: list = []
    for expr in exprs:
        if expr is None:
            continue
        if isinstance(expr, Or):
            operands.extend(expr.operands)
        else:
            operands.append(expr)
    if not operands:
        return None
    if len(operands) == 1:
        return operands[0]
    return Or(tuple(operands))


def distribute(filters: list[Expr], alternatives: list[Expr]) -> Expr | None:
    """
    Build ``(filters AND alt_1) OR (filters AND alt_2) OR ...``.

    Every disjunct carries the complete filter set, so a row can only match
    through an alternative if it also satisfies every filter.
    """
    if not alternatives:
        return conjoin(*filters)
    return disjoin(*(conjoin(*filters, alt) for alt in alternatives))


def to_sqlalchemy(expr: Expr, model):
    """Translate an expression tree into a SQLAlchemy boolean clause."""
    if isinstance(expr, And):
        return and_(*(to_sqlalchemy(operand, model) for operand in expr.operands))
    if isinstance(expr, Or):
        return or_(*(to_sqlalchemy(operand, model) for operand in expr.operands))
    if isinstance(expr, Comparison):
        column = getattr(model, expr.field)
        if expr.op == Op.EQ:
            return column == expr.value
        if expr.op == Op.CONTAINS:
            return column.contains(expr.value, autoescape=True)
        if expr.op == Op.BETWEEN:
            lower, upper = expr.value
            return column.between(lower, upper)
        raise ValueError(f"Unsupported operator: {expr.op}")
    raise TypeError(f"Not a filter expression: {expr!r}")
