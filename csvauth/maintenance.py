"""
Maintenance entry point.

Run periodically (cron) to clean up old data:

    python -m csvauth.maintenance
"""

import logging

from csvauth.config import AuthConfig
from csvauth.services.maintenance_service import MaintenanceService
from csvauth.stores.csv_store import CsvRecordStore


def main():
    """Run one maintenance pass against the configured data directory."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = AuthConfig()
    store = CsvRecordStore.from_config(config)
    report = MaintenanceService(store, config).run()

    print("=== Auth System Maintenance ===")
    print(f"Removed {report.expired_sessions_removed} expired sessions")
    print(f"Removed {report.login_attempts_removed} old login attempts")
    print(f"Removed {report.activity_entries_removed} old activity log entries")
    print("\n=== Current Statistics ===")
    for table, count in report.table_counts.items():
        print(f"  {table}: {count}")


if __name__ == "__main__":
    main()
