# ============================================================================
# CLAUDE CONTEXT - SCHEMA MODULE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Schema generation from Pydantic models
# PURPOSE: Generate PostgreSQL DDL from Pydantic models (single source of truth)
# LAST_REVIEWED: 19 OCT 2026
# ============================================================================

from core.schema.sql_generator import PydanticToSQL, SCHEMA_MODELS

__all__ = [
    "PydanticToSQL",
    "SCHEMA_MODELS",
]
