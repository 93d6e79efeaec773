"""Calendar-aligned time buckets computed by the database.

``time_bucket(unit, column)`` truncates a timestamp to the start of its
hour, day, ISO week (Monday) or calendar month, always in UTC:

* PostgreSQL: ``date_trunc(unit, time AT TIME ZONE 'UTC')``
* SQLite: ``datetime()`` with the matching modifiers

Both return a timezone-naive UTC timestamp; callers attach UTC.
"""

from sqlalchemy import DateTime
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement

BUCKET_UNITS = ("hour", "day", "week", "month")

_SQLITE_TEMPLATES = {
    "hour": "strftime('%Y-%m-%d %H:00:00', {expr})",
    "day": "datetime({expr}, 'start of day')",
    "week": "datetime({expr}, 'weekday 0', '-6 days', 'start of day')",
    "month": "datetime({expr}, 'start of month')",
}


class time_bucket(FunctionElement):
    """Start of the calendar bucket containing a timestamp column."""

    type = DateTime()
    name = "time_bucket"
    # unit is rendered as a literal, so statements using it are not cached
    inherit_cache = False

    def __init__(self, unit: str, expr, **kw):
        if unit not in BUCKET_UNITS:
            raise ValueError(f"Unsupported bucket unit: {unit!r}")
        self.unit = unit
        super().__init__(expr, **kw)


@compiles(time_bucket, "postgresql")
def _compile_time_bucket_postgresql(element, compiler, **kw):
    expr = compiler.process(element.clauses, **kw)
    # literal unit keeps SELECT and GROUP BY textually identical
    return f"date_trunc('{element.unit}', {expr} AT TIME ZONE 'UTC')"


@compiles(time_bucket, "sqlite")
def _compile_time_bucket_sqlite(element, compiler, **kw):
    expr = compiler.process(element.clauses, **kw)
    return _SQLITE_TEMPLATES[element.unit].format(expr=expr)


@compiles(time_bucket)
def _compile_time_bucket_default(element, compiler, **kw):
    raise NotImplementedError(
        f"time_bucket is not available for dialect {compiler.dialect.name!r}"
    )
