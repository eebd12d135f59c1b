"""
Backup service for the back office.
Creates and rotates ZIP archives containing the database and the generated
purchase-order PDFs.
"""
import logging
import os
import sqlite3
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import Config

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backoffice_backup_"


class BackupService:
    """
    Manages backups and rotation.
    """

    def __init__(self, config: Config, backup_dir: Optional[Path] = None) -> None:
        self.config = config
        self.backup_dir = backup_dir or config.backup_dir
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    def create_backup(self) -> Path:
        """
        Create a new timestamped ZIP backup. Returns its path.
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        zip_path = self.backup_dir / f"{BACKUP_PREFIX}{timestamp}.zip"

        logger.info("Starting backup: %s", zip_path.name)

        try:
            with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zipf:
                # 1. Database (consistent copy through the sqlite backup API)
                if self.config.db_path.exists():
                    temp_db = self.backup_dir / f"temp_{timestamp}.db"
                    src_conn = sqlite3.connect(self.config.db_path)
                    dst_conn = sqlite3.connect(temp_db)
                    try:
                        src_conn.backup(dst_conn)
                    finally:
                        src_conn.close()
                        dst_conn.close()
                    try:
                        zipf.write(temp_db, arcname=f"output/{self.config.db_path.name}")
                    finally:
                        temp_db.unlink(missing_ok=True)

                # 2. Generated PDFs
                orders_dir = self.config.orders_dir
                if orders_dir.exists():
                    for f in sorted(orders_dir.glob("*.pdf")):
                        zipf.write(f, arcname=f"orders/{f.name}")

            logger.info("Backup completed successfully: %s", zip_path.name)
            self.rotate_backups()
            return zip_path

        except Exception as e:
            logger.error("Backup failed: %s", e)
            zip_path.unlink(missing_ok=True)
            raise

    def rotate_backups(self) -> list[Path]:
        """
        Remove old backups, keeping only the last N files.  Returns what was removed.
        """
        retention = self.config.backup_retention_count
        if retention <= 0:
            return []

        backups = sorted(
            self.backup_dir.glob(f"{BACKUP_PREFIX}*.zip"),
            key=lambda p: (os.path.getmtime(p), p.name),
            reverse=True,
        )

        removed = []
        for old_zip in backups[retention:]:
            logger.info("Rotating out old backup: %s", old_zip.name)
            try:
                old_zip.unlink()
                removed.append(old_zip)
            except OSError as e:
                logger.warning("Failed to delete old backup %s: %s", old_zip, e)
        return removed
