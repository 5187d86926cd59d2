# ============================================================================
# SQL GENERATOR TESTS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Tests - DDL generation from the Pydantic models
# PURPOSE: Verify tables, enums, defaults, indexes and triggers
# CREATED: 19 OCT 2026
# ============================================================================
"""
PydanticToSQL Tests

Statements are rendered with as_string(None); no database is needed.

Run with:
    pytest tests/test_sql_generator.py -v
"""

from core.models import (
    PortalConfig,
    PortalCredential,
    SubmissionHistoryEntry,
    SubmissionQueueItem,
    WorkflowExecutionStep,
)
from core.schema import PydanticToSQL, SCHEMA_MODELS


def _render(stmt):
    return stmt.as_string(None)


class TestGenerateTable:

    def setup_method(self):
        self.generator = PydanticToSQL()

    def test_schema_models(self):
        tables = [m.__sql_table__ for m in SCHEMA_MODELS]
        assert tables == [
            "workflows",
            "workflow_executions",
            "workflow_execution_steps",
            "portal_credentials",
            "carrier_portal_configs",
            "submission_queue",
            "submission_history",
        ]

    def test_submission_queue_columns(self):
        ddl = _render(self.generator.generate_table(SubmissionQueueItem))

        assert ddl.startswith('CREATE TABLE IF NOT EXISTS "claimflow"."submission_queue"')
        assert '"submission_id" VARCHAR(64)' in ddl
        assert '"form_data" JSONB NOT NULL DEFAULT \'{}\'' in ddl
        assert '"attempt_count" INTEGER NOT NULL DEFAULT 0' in ddl
        assert '"max_attempts" INTEGER NOT NULL DEFAULT 3' in ddl
        assert '"scheduled_for" TIMESTAMPTZ NOT NULL DEFAULT NOW()' in ddl
        assert '"next_attempt_at" TIMESTAMPTZ,' in ddl
        assert 'PRIMARY KEY ("submission_id")' in ddl

    def test_enum_columns_reference_schema_types(self):
        ddl = _render(self.generator.generate_table(SubmissionQueueItem))

        assert '"status" "claimflow"."submission_status" NOT NULL DEFAULT \'queued\'::"claimflow"."submission_status"' in ddl
        assert "submission_status" in self.generator.enums
        assert "submission_priority" in self.generator.enums
        assert "carrier" in self.generator.enums

    def test_nested_models_become_jsonb(self):
        ddl = _render(self.generator.generate_table(PortalConfig))

        assert '"login_selectors" JSONB' in ddl
        assert '"claim_form_selectors" JSONB' in ddl
        assert '"is_enabled" BOOLEAN NOT NULL DEFAULT true' in ddl
        assert 'PRIMARY KEY ("carrier")' in ddl

    def test_credentials_store_only_ciphertext_columns(self):
        ddl = _render(self.generator.generate_table(PortalCredential))

        assert '"encrypted_password" VARCHAR NOT NULL' in ddl
        assert '"encrypted_account_number" VARCHAR,' in ddl
        assert '"password"' not in ddl
        assert '"username"' not in ddl

    def test_serial_history_id(self):
        ddl = _render(self.generator.generate_table(SubmissionHistoryEntry))
        assert '"history_id" SERIAL' in ddl

    def test_step_foreign_key(self):
        ddl = _render(self.generator.generate_table(WorkflowExecutionStep))
        assert 'REFERENCES "claimflow"."workflow_executions" ("execution_id") ON DELETE CASCADE' in ddl


class TestGenerateAll:

    def test_order_schema_enums_tables_indexes_triggers(self):
        statements = [_render(s) for s in PydanticToSQL().generate_all()]

        assert statements[0] == 'CREATE SCHEMA IF NOT EXISTS "claimflow"'

        first_table = next(i for i, s in enumerate(statements) if s.startswith("CREATE TABLE"))
        last_enum = max(i for i, s in enumerate(statements) if "CREATE TYPE" in s)
        first_index = next(i for i, s in enumerate(statements) if s.startswith("CREATE INDEX"))
        assert last_enum < first_table < first_index

        tables = [s for s in statements if s.startswith("CREATE TABLE")]
        assert len(tables) == len(SCHEMA_MODELS)

    def test_enum_creation_is_idempotent_by_default(self):
        statements = [_render(s) for s in PydanticToSQL().generate_all()]
        enum_statements = [s for s in statements if "CREATE TYPE" in s]

        assert enum_statements
        assert all("IF NOT EXISTS" in s for s in enum_statements)
        assert not any(s.startswith("DROP TYPE") for s in statements)

    def test_destructive_drops_enums(self):
        generator = PydanticToSQL(destructive=True)
        statements = [_render(s) for s in generator.generate_all()]

        assert any(s.startswith('DROP TYPE IF EXISTS "claimflow"."submission_status" CASCADE') for s in statements)
        assert _render(generator.generate_drop_schema()) == 'DROP SCHEMA IF EXISTS "claimflow" CASCADE'

    def test_partial_ready_index(self):
        statements = [_render(s) for s in PydanticToSQL().generate_all()]

        ready = [s for s in statements if '"idx_submission_queue_ready"' in s]
        assert ready == [
            'CREATE INDEX IF NOT EXISTS "idx_submission_queue_ready" ON "claimflow"."submission_queue" '
            '("priority", "scheduled_for") WHERE status = \'queued\''
        ]

    def test_updated_at_triggers(self):
        statements = [_render(s) for s in PydanticToSQL().generate_all()]
        triggers = [s for s in statements if "CREATE TRIGGER" in s]

        with_updated_at = [m for m in SCHEMA_MODELS if "updated_at" in m.model_fields]
        assert len(triggers) == len(with_updated_at)
        assert not any("submission_history" in s for s in triggers)
