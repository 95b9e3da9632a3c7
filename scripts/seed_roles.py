#!/usr/bin/env python3
"""
Seed (or refresh) the platform default roles from ROLE_DEFAULTS.

Run from project root: python scripts/seed_roles.py
"""

import json
import os
import sys

import psycopg2
from dotenv import load_dotenv

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)
load_dotenv(os.path.join(project_root, ".env"))

from src.auth.permissions import PERMISSION_SCHEMA_VERSION, ROLE_DEFAULTS  # noqa: E402

UPSERT_ROLE = """
INSERT INTO roles (organization_id, name, description, permissions, is_active)
VALUES (NULL, %(name)s, %(description)s, %(permissions)s::jsonb, TRUE)
ON CONFLICT (name) WHERE organization_id IS NULL
DO UPDATE SET permissions = EXCLUDED.permissions, description = EXCLUDED.description, updated_at = NOW();
"""


def main():
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("Error: DATABASE_URL must be set in .env")
        sys.exit(1)

    conn = psycopg2.connect(database_url)
    conn.autocommit = True
    cur = conn.cursor()

    for name, permissions in ROLE_DEFAULTS.items():
        cur.execute(UPSERT_ROLE, {
            "name": name,
            "description": f"Platform default role (permission schema v{PERMISSION_SCHEMA_VERSION})",
            "permissions": json.dumps(permissions),
        })
        granted = sum(1 for value in permissions.values() if value)
        print(f"Seeded role {name}: {granted}/{len(permissions)} permissions granted")

    cur.close()
    conn.close()


if __name__ == "__main__":
    main()
