"""Initial schema for the dataset and training-job ledgers."""

from __future__ import annotations

from backend.database import Migration

COUNTERS = ("last_dataset_id", "last_job_id")


class Migration0001Initial(Migration):
    version = "0001_initial"

    def upgrade(self, cursor, driver: str) -> None:  # type: ignore[override]
        if driver == "postgres":
            statements = [
                """
                CREATE TABLE IF NOT EXISTS marketplace_datasets (
                    id BIGINT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    name TEXT NOT NULL,
                    metadata_url TEXT NOT NULL,
                    category TEXT NOT NULL,
                    price_per_use BIGINT NOT NULL CHECK (price_per_use >= 0),
                    access_count BIGINT NOT NULL DEFAULT 0 CHECK (access_count >= 0),
                    active BOOLEAN NOT NULL DEFAULT TRUE,
                    created_at BIGINT NOT NULL
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS marketplace_training_jobs (
                    id BIGINT PRIMARY KEY,
                    creator TEXT NOT NULL,
                    name TEXT NOT NULL,
                    dataset_ids TEXT NOT NULL,
                    computation_provider TEXT,
                    status TEXT NOT NULL,
                    result_url TEXT,
                    total_cost BIGINT NOT NULL CHECK (total_cost >= 0),
                    created_at BIGINT NOT NULL,
                    completed_at BIGINT
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS marketplace_balances (
                    identity TEXT PRIMARY KEY,
                    amount BIGINT NOT NULL CHECK (amount >= 0)
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS marketplace_counters (
                    name TEXT PRIMARY KEY,
                    value BIGINT NOT NULL
                )
                """,
            ]
        else:
            statements = [
                """
                CREATE TABLE IF NOT EXISTS marketplace_datasets (
                    id INTEGER PRIMARY KEY,
                    owner TEXT NOT NULL,
                    name TEXT NOT NULL,
                    metadata_url TEXT NOT NULL,
                    category TEXT NOT NULL,
                    price_per_use INTEGER NOT NULL CHECK (price_per_use >= 0),
                    access_count INTEGER NOT NULL DEFAULT 0 CHECK (access_count >= 0),
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at INTEGER NOT NULL
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS marketplace_training_jobs (
                    id INTEGER PRIMARY KEY,
                    creator TEXT NOT NULL,
                    name TEXT NOT NULL,
                    dataset_ids TEXT NOT NULL,
                    computation_provider TEXT,
                    status TEXT NOT NULL,
                    result_url TEXT,
                    total_cost INTEGER NOT NULL CHECK (total_cost >= 0),
                    created_at INTEGER NOT NULL,
                    completed_at INTEGER
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS marketplace_balances (
                    identity TEXT PRIMARY KEY,
                    amount INTEGER NOT NULL CHECK (amount >= 0)
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS marketplace_counters (
                    name TEXT PRIMARY KEY,
                    value INTEGER NOT NULL
                )
                """,
            ]
        statements.extend(
            [
                "CREATE INDEX IF NOT EXISTS idx_marketplace_datasets_owner ON marketplace_datasets(owner)",
                "CREATE INDEX IF NOT EXISTS idx_marketplace_jobs_creator ON marketplace_training_jobs(creator)",
                "CREATE INDEX IF NOT EXISTS idx_marketplace_jobs_status ON marketplace_training_jobs(status)",
            ]
        )
        for statement in statements:
            cursor.execute(statement)
        placeholder = "%s" if driver == "postgres" else "?"
        for counter in COUNTERS:
            cursor.execute(
                f"INSERT INTO marketplace_counters (name, value) VALUES ({placeholder}, 0) "
                "ON CONFLICT (name) DO NOTHING",
                (counter,),
            )


__all__ = ["COUNTERS", "Migration0001Initial"]
