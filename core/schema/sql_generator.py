# ============================================================================
# CLAUDE CONTEXT - PYDANTIC TO SQL GENERATOR
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - DDL generation from Pydantic models
# PURPOSE: Generate PostgreSQL CREATE statements from Pydantic models
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: PydanticToSQL, SCHEMA_MODELS
# DEPENDENCIES: pydantic, psycopg
# ============================================================================
"""
Pydantic to PostgreSQL Schema Generator.

Generates PostgreSQL DDL statements from Pydantic models.
Pydantic models are the SINGLE SOURCE OF TRUTH for schema.

Model Metadata Convention:
    Models define SQL metadata via ClassVar attributes:
    - __sql_table__: Table name
    - __sql_schema__: Schema name
    - __sql_primary_key__: Primary key column(s) - string or list
    - __sql_foreign_keys__: Dict of {column: "schema.table(column)"}
    - __sql_indexes__: List of (name, columns[, partial_where]) tuples
    - __sql_serial_columns__: Columns that should be SERIAL

Enum types are discovered while generating tables and emitted ahead of them.

Usage:
    generator = PydanticToSQL(schema_name="claimflow")
    statements = generator.generate_all()
    for stmt in statements:
        cursor.execute(stmt)
"""

import re
import logging
from typing import Dict, List, Type, Any, Union, get_args, get_origin
from datetime import datetime
from enum import Enum
from pydantic import BaseModel
from pydantic.fields import FieldInfo
from psycopg import sql
from annotated_types import MaxLen

from core.models import (
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowExecutionStep,
    PortalCredential,
    PortalConfig,
    SubmissionQueueItem,
    SubmissionHistoryEntry,
)

logger = logging.getLogger(__name__)


# Creation order matters for foreign keys
SCHEMA_MODELS: List[Type[BaseModel]] = [
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowExecutionStep,
    PortalCredential,
    PortalConfig,
    SubmissionQueueItem,
    SubmissionHistoryEntry,
]


class PydanticToSQL:
    """
    Convert Pydantic models to PostgreSQL DDL statements.

    Analyzes Pydantic models with __sql_* metadata and generates
    corresponding PostgreSQL CREATE TABLE statements.
    """

    TYPE_MAP = {
        str: "VARCHAR",
        int: "INTEGER",
        float: "DOUBLE PRECISION",
        bool: "BOOLEAN",
        datetime: "TIMESTAMPTZ",
        dict: "JSONB",
        list: "JSONB",
    }

    def __init__(self, schema_name: str = "claimflow", destructive: bool = False):
        """
        Initialize the generator.

        Args:
            schema_name: Default PostgreSQL schema name
            destructive: If True, use DROP+CREATE for enums (data loss risk).
                        If False (default), create only if missing.
        """
        self.schema_name = schema_name
        self.destructive = destructive
        self.enums: Dict[str, Type[Enum]] = {}

    # =========================================================================
    # METADATA EXTRACTION
    # =========================================================================

    @staticmethod
    def get_model_metadata(model: Type[BaseModel]) -> Dict[str, Any]:
        """Extract SQL DDL metadata from a Pydantic model."""
        primary_key = getattr(model, "__sql_primary_key__", [])
        if isinstance(primary_key, str):
            primary_key = [primary_key]

        return {
            "table": getattr(model, "__sql_table__", None),
            "schema": getattr(model, "__sql_schema__", "claimflow"),
            "primary_key": primary_key,
            "foreign_keys": getattr(model, "__sql_foreign_keys__", {}),
            "indexes": getattr(model, "__sql_indexes__", []),
            "serial_columns": getattr(model, "__sql_serial_columns__", []),
        }

    # =========================================================================
    # TYPE CONVERSION
    # =========================================================================

    @staticmethod
    def _unwrap_optional(field_type: Any) -> tuple:
        """Return (inner_type, is_optional)."""
        if get_origin(field_type) is Union:
            args = [a for a in get_args(field_type) if a is not type(None)]
            is_optional = len(args) < len(get_args(field_type))
            if len(args) == 1:
                return args[0], is_optional
            return field_type, is_optional
        return field_type, False

    def python_type_to_sql(self, field_type: Any, field_info: FieldInfo) -> str:
        """
        Convert Python type to PostgreSQL type.

        Nested models, lists and dicts become JSONB. Enums become named
        PostgreSQL enum types (snake_case of the class name).
        """
        actual_type, _ = self._unwrap_optional(field_type)

        if get_origin(actual_type) in (dict, list, Union):
            return "JSONB"

        if actual_type is str:
            for constraint in field_info.metadata or []:
                if isinstance(constraint, MaxLen):
                    return f"VARCHAR({constraint.max_length})"
            return "VARCHAR"

        if isinstance(actual_type, type) and issubclass(actual_type, Enum):
            enum_name = re.sub(r'(?<!^)(?=[A-Z])', '_', actual_type.__name__).lower()
            self.enums[enum_name] = actual_type
            return enum_name

        return self.TYPE_MAP.get(actual_type, "JSONB")

    # =========================================================================
    # ENUM GENERATION
    # =========================================================================

    def generate_enum(self, enum_name: str, enum_class: Type[Enum], schema: str) -> List[sql.Composable]:
        """
        Generate PostgreSQL ENUM type DDL.

        destructive=True drops dependent columns; only use for a rebuild.
        """
        values_sql = sql.SQL(', ').join(sql.Literal(member.value) for member in enum_class)

        if self.destructive:
            return [
                sql.SQL("DROP TYPE IF EXISTS {}.{} CASCADE").format(
                    sql.Identifier(schema), sql.Identifier(enum_name)
                ),
                sql.SQL("CREATE TYPE {}.{} AS ENUM ({})").format(
                    sql.Identifier(schema), sql.Identifier(enum_name), values_sql
                ),
            ]

        return [
            sql.SQL("""
DO $$
BEGIN
    IF NOT EXISTS (
        SELECT 1 FROM pg_type t JOIN pg_namespace n ON n.oid = t.typnamespace
        WHERE t.typname = {name_literal} AND n.nspname = {schema_literal}
    ) THEN
        CREATE TYPE {schema}.{name} AS ENUM ({values});
    END IF;
END$$
""").format(
                name_literal=sql.Literal(enum_name),
                schema_literal=sql.Literal(schema),
                schema=sql.Identifier(schema),
                name=sql.Identifier(enum_name),
                values=values_sql,
            )
        ]

    # =========================================================================
    # TABLE GENERATION
    # =========================================================================

    def _column_default(self, field_name: str, field_info: FieldInfo, sql_type: str, schema: str) -> sql.Composable:
        default = field_info.default

        if field_info.default_factory is not None:
            if field_name in ("created_at", "updated_at", "scheduled_for"):
                return sql.SQL(" DEFAULT NOW()")
            if sql_type == "JSONB":
                empty = field_info.default_factory()
                return sql.SQL(" DEFAULT {}").format(sql.Literal("[]" if isinstance(empty, list) else "{}"))
            return sql.SQL("")

        if default is None or default is ...:
            return sql.SQL("")
        if isinstance(default, Enum):
            return sql.SQL(" DEFAULT {}::{}.{}").format(
                sql.Literal(default.value), sql.Identifier(schema), sql.Identifier(sql_type)
            )
        if isinstance(default, bool):
            return sql.SQL(" DEFAULT true" if default else " DEFAULT false")
        if isinstance(default, (str, int, float)):
            return sql.SQL(" DEFAULT {}").format(sql.Literal(default))
        return sql.SQL("")

    def generate_table(self, model: Type[BaseModel]) -> sql.Composed:
        """
        Generate CREATE TABLE DDL from a Pydantic model.

        Args:
            model: Pydantic model with __sql_* metadata

        Returns:
            sql.Composed CREATE TABLE statement
        """
        meta = self.get_model_metadata(model)
        table_name = meta["table"]
        schema_name = meta["schema"]
        primary_key = meta["primary_key"]

        if not table_name:
            raise ValueError(f"Model {model.__name__} missing __sql_table__ attribute")

        logger.debug(f"Generating table {schema_name}.{table_name} from {model.__name__}")

        parts: List[sql.Composable] = []

        for field_name, field_info in model.model_fields.items():
            sql_type = self.python_type_to_sql(field_info.annotation, field_info)
            _, is_optional = self._unwrap_optional(field_info.annotation)

            if field_name in meta["serial_columns"]:
                parts.append(sql.SQL("{} SERIAL").format(sql.Identifier(field_name)))
                continue

            if sql_type in self.enums:
                type_sql = sql.SQL("{}.{}").format(sql.Identifier(schema_name), sql.Identifier(sql_type))
            else:
                type_sql = sql.SQL(sql_type)

            not_null = sql.SQL("")
            if not is_optional and field_name not in primary_key:
                not_null = sql.SQL(" NOT NULL")

            parts.append(sql.SQL("{} {}{}{}").format(
                sql.Identifier(field_name),
                type_sql,
                not_null,
                self._column_default(field_name, field_info, sql_type, schema_name),
            ))

        if primary_key:
            parts.append(sql.SQL("PRIMARY KEY ({})").format(
                sql.SQL(", ").join(sql.Identifier(col) for col in primary_key)
            ))

        for fk_column, fk_reference in meta["foreign_keys"].items():
            match = re.match(r"(\w+)\.(\w+)\((\w+)\)", fk_reference)
            if match:
                ref_schema, ref_table, ref_column = match.groups()
                parts.append(
                    sql.SQL("FOREIGN KEY ({}) REFERENCES {}.{} ({}) ON DELETE CASCADE").format(
                        sql.Identifier(fk_column),
                        sql.Identifier(ref_schema),
                        sql.Identifier(ref_table),
                        sql.Identifier(ref_column),
                    )
                )

        return sql.SQL("CREATE TABLE IF NOT EXISTS {}.{} ({})").format(
            sql.Identifier(schema_name),
            sql.Identifier(table_name),
            sql.SQL(", ").join(parts),
        )

    # =========================================================================
    # INDEXES + TRIGGERS
    # =========================================================================

    def generate_indexes(self, model: Type[BaseModel]) -> List[sql.Composed]:
        """Generate CREATE INDEX statements from a model's __sql_indexes__."""
        meta = self.get_model_metadata(model)
        result = []

        for idx_def in meta["indexes"]:
            name = idx_def[0]
            columns = idx_def[1] if len(idx_def) > 1 else []
            partial_where = idx_def[2] if len(idx_def) > 2 else None
            if isinstance(columns, str):
                columns = [columns]
            if not name or not columns:
                continue

            stmt = sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {}.{} ({})").format(
                sql.Identifier(name),
                sql.Identifier(meta["schema"]),
                sql.Identifier(meta["table"]),
                sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            )
            if partial_where:
                stmt = sql.SQL("{} WHERE {}").format(stmt, sql.SQL(partial_where))
            result.append(stmt)

        return result

    def generate_updated_at_function(self) -> sql.Composed:
        return sql.SQL("""
            CREATE OR REPLACE FUNCTION {schema}.update_updated_at_column()
            RETURNS TRIGGER
            LANGUAGE plpgsql
            AS $$
            BEGIN
                NEW.updated_at = NOW();
                RETURN NEW;
            END;
            $$
        """).format(schema=sql.Identifier(self.schema_name))

    def generate_updated_at_trigger(self, table: str) -> List[sql.Composed]:
        """DROP + CREATE for idempotency."""
        trigger_name = sql.Identifier(f"trg_{table}_updated_at")
        schema = sql.Identifier(self.schema_name)
        table_id = sql.Identifier(table)
        return [
            sql.SQL("DROP TRIGGER IF EXISTS {} ON {}.{}").format(trigger_name, schema, table_id),
            sql.SQL("""
            CREATE TRIGGER {name}
            BEFORE UPDATE ON {schema}.{table}
            FOR EACH ROW
            EXECUTE FUNCTION {schema}.update_updated_at_column()
            """).format(name=trigger_name, schema=schema, table=table_id),
        ]

    # =========================================================================
    # COMPLETE SCHEMA GENERATION
    # =========================================================================

    def generate_drop_schema(self) -> sql.Composed:
        """DROP SCHEMA CASCADE. Destroys ALL data in the schema."""
        return sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(
            sql.Identifier(self.schema_name)
        )

    def generate_all(self) -> List[sql.Composable]:
        """
        Generate complete DDL for all persistent models.

        Returns:
            List of statements ready for execution
        """
        self.enums = {}

        # Tables first so enum types are discovered
        tables = [self.generate_table(model) for model in SCHEMA_MODELS]

        statements: List[sql.Composable] = [
            sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(self.schema_name)),
        ]

        for enum_name, enum_class in self.enums.items():
            statements.extend(self.generate_enum(enum_name, enum_class, self.schema_name))

        statements.extend(tables)

        for model in SCHEMA_MODELS:
            statements.extend(self.generate_indexes(model))

        statements.append(self.generate_updated_at_function())
        for model in SCHEMA_MODELS:
            if "updated_at" in model.model_fields:
                statements.extend(self.generate_updated_at_trigger(model.__sql_table__))

        logger.info(f"Generated {len(statements)} DDL statements for schema {self.schema_name}")
        return statements

    def execute(self, conn, dry_run: bool = False) -> int:
        """
        Execute all DDL statements.

        Args:
            conn: psycopg connection
            dry_run: If True, log statements but don't execute

        Returns:
            Number of statements executed
        """
        statements = self.generate_all()

        if dry_run:
            for stmt in statements:
                logger.info(f"[DRY RUN] {stmt.as_string(conn)[:100]}...")
            return len(statements)

        with conn.cursor() as cur:
            for stmt in statements:
                cur.execute(stmt)

        logger.info(f"Executed {len(statements)} DDL statements")
        return len(statements)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ['PydanticToSQL', 'SCHEMA_MODELS']
