"""
Seed the configured database with the demo organization.

Usage:
    python -m server.seed [--days 30]

Creates the demo organization, its stations, the impact factor table and
`days` days of mock detections. Running it twice does nothing the second time.
"""

import argparse
import random
from typing import Optional

from waste_metrics.data_source import DETECTIONS, IMPACT_FACTORS, ORGANIZATIONS, STATIONS, USER_PROFILES
from collectors.demo_data import (
    DEMO_ORGANIZATION_ID,
    DEMO_ORGANIZATION_NAME,
    DEMO_STATIONS,
    generate_mock_detections,
    impact_factor_rows,
)
from server.data_source import SqlDataSource
from server.notifications import LocalChangeHub
from sharedUtils.config.loader import get_data_source_config
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)


def seed_demo(source: SqlDataSource, days: int = 30, rng: Optional[random.Random] = None) -> int:
    """
    Insert the demo data set.

    Returns:
        Number of detections inserted (0 if the demo organization already exists)
    """
    if source.query(ORGANIZATIONS, {"id": DEMO_ORGANIZATION_ID}):
        logger.info("Demo organization already present - skipping seed")
        return 0

    source.insert(ORGANIZATIONS, {"id": DEMO_ORGANIZATION_ID, "name": DEMO_ORGANIZATION_NAME})
    source.insert_many(USER_PROFILES, [
        {"id": "demo-admin", "email": "admin@demo.local", "role": "admin"},
        {"id": "demo-client", "email": "client@demo.local", "role": "client",
         "organization_id": DEMO_ORGANIZATION_ID},
    ])
    source.insert_many(STATIONS, DEMO_STATIONS)

    existing = {row["item_key"] for row in source.query(IMPACT_FACTORS)}
    source.insert_many(IMPACT_FACTORS, [r for r in impact_factor_rows() if r["item"] not in existing])

    count = source.insert_many(DETECTIONS, generate_mock_detections(days=days, rng=rng))
    logger.info("Seeded %d detections over %d days for %s", count, days, DEMO_ORGANIZATION_ID)
    return count


def main():
    parser = argparse.ArgumentParser(description="Seed the database with demo data")
    parser.add_argument("--days", type=int, default=30, help="Days of mock detections")
    args = parser.parse_args()

    source = SqlDataSource.from_config(get_data_source_config(), LocalChangeHub())
    source.create_all()
    seed_demo(source, days=args.days)


if __name__ == "__main__":
    main()
