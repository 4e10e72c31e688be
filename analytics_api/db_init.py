"""
Idempotent schema bootstrap.

Tables are declared once as SQLAlchemy models; the DDL is compiled for the
PostgreSQL dialect and executed over the asyncpg pool at startup.
"""
import logging
from typing import List

from asyncpg import Pool
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from .models.base import Base
from .models.tenant_app import TenantAppDB  # noqa: F401  (registers table)
from .models.event import EventDB  # noqa: F401  (registers table)

logger = logging.getLogger(__name__)


def schema_statements() -> List[str]:
    """CREATE TABLE / CREATE INDEX statements in dependency order."""
    dialect = postgresql.dialect()
    statements = []
    for table in Base.metadata.sorted_tables:
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip())
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip())
    return statements


async def init_schema(pool: Pool) -> None:
    async with pool.acquire() as conn:
        async with conn.transaction():
            for statement in schema_statements():
                await conn.execute(statement)
    logger.info("Database schema ready")
