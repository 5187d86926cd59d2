#!/usr/bin/env python
# ============================================================================
# SCHEMA DEPLOYMENT SCRIPT
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# PURPOSE: Deploy claimflow schema to PostgreSQL using PydanticToSQL
# USAGE:
#   python scripts/deploy_schema.py --dry-run                # Preview SQL
#   python scripts/deploy_schema.py                          # Execute deployment
#   python scripts/deploy_schema.py --seed-portal-configs    # Deploy + default carrier configs
# ============================================================================

import sys
import os
import argparse
import asyncio
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import psycopg

from core.schema import PydanticToSQL, SCHEMA_MODELS
from repositories.database import DatabasePool, get_connection_string
from repositories.portal_config_repo import PortalConfigRepository


async def _seed_portal_configs(conninfo: str) -> int:
    async with DatabasePool(min_size=1, max_size=2, connection_string=conninfo) as pool:
        return await PortalConfigRepository(pool).seed_defaults()


def main():
    parser = argparse.ArgumentParser(
        description="Deploy claimflow schema to PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/deploy_schema.py --dry-run                 # Preview DDL without executing
  python scripts/deploy_schema.py                           # Deploy schema
  python scripts/deploy_schema.py --seed-portal-configs     # Deploy and seed carrier configs

Environment Variables:
  DATABASE_URL          Full PostgreSQL connection string
  POSTGRES_HOST         Database host (default: localhost)
  POSTGRES_DB           Database name (default: postgres)
  POSTGRES_USER         Database user (default: postgres)
  POSTGRES_PASSWORD     Database password
  POSTGRES_PORT         Database port (default: 5432)
  POSTGRES_SSLMODE      SSL mode (default: require)
        """
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print DDL without executing"
    )
    parser.add_argument(
        "--destructive",
        action="store_true",
        help="DROP SCHEMA CASCADE before deploying (destroys all data)"
    )
    parser.add_argument(
        "--seed-portal-configs",
        action="store_true",
        help="Insert default FEDEX/UPS/USPS/DHL portal configs where missing"
    )
    parser.add_argument(
        "--connection",
        type=str,
        help="PostgreSQL connection string (overrides environment)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    generator = PydanticToSQL(destructive=args.destructive)
    statements = generator.generate_all()
    if args.destructive:
        statements.insert(0, generator.generate_drop_schema())

    print("=" * 70)
    print("CLAIMFLOW - Schema Deployment")
    print("=" * 70)
    print(f"Schema: {generator.schema_name}")
    print(f"Tables: {', '.join(m.__sql_table__ for m in SCHEMA_MODELS)}")
    print(f"Statements: {len(statements)}")
    print(f"Mode: {'DRY RUN' if args.dry_run else 'EXECUTE'}")
    print("=" * 70)

    if args.dry_run:
        for stmt in statements:
            print(stmt.as_string(None).strip() + ";\n")
        return

    conninfo = args.connection or get_connection_string()
    try:
        with psycopg.connect(conninfo, autocommit=True) as conn:
            with conn.cursor() as cur:
                for stmt in statements:
                    cur.execute(stmt)
    except psycopg.Error as e:
        print(f"Deployment failed: {e}")
        sys.exit(1)

    print(f"Executed {len(statements)} statements")

    if args.seed_portal_configs:
        inserted = asyncio.run(_seed_portal_configs(conninfo))
        print(f"Seeded {inserted} portal configs")

    print("=" * 70)
    print("Deployment completed successfully")
    print("=" * 70)


if __name__ == "__main__":
    main()
