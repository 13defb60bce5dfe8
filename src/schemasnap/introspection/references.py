"""
SQL Parser for Dependency Extraction

Uses SQLGlot to parse view bodies and extract the relations they read from.
"""

import logging

import sqlglot
from sqlglot import expressions as exp
from sqlglot.errors import SqlglotError

logger = logging.getLogger(__name__)


def extract_table_references(sql: str, dialect: str) -> list[tuple[str | None, str]]:
    """
    Extract table/view references from a SELECT statement.

    Args:
        sql: View body (the SELECT, without CREATE VIEW)
        dialect: SQLGlot dialect name

    Returns:
        Sorted, de-duplicated ``(namespace, name)`` pairs; namespace is None when
        the reference is unqualified. CTE names are excluded.

    Note:
        SQLGlot cannot distinguish tables from views; the caller resolves each
        name against the catalog. Unparseable bodies yield no references (the
        view then orders purely by name).
    """
    try:
        parsed = sqlglot.parse_one(sql, dialect=dialect)
    except SqlglotError as err:
        logger.warning("Could not parse view body for dependencies: %s", err)
        return []

    cte_names = {cte.alias_or_name for cte in parsed.find_all(exp.CTE)}
    references: set[tuple[str | None, str]] = set()
    for table in parsed.find_all(exp.Table):
        if not table.name:
            continue
        if not table.db and table.name in cte_names:
            continue
        references.add((table.db or None, table.name))

    return sorted(references, key=lambda ref: (ref[0] or "", ref[1]))
