"""
Integration tests for database and PDF backups.
"""
import zipfile

import pytest

from ordering.backup import BACKUP_PREFIX, BackupService


@pytest.mark.integration
class TestBackupService:
    """Tests for BackupService."""

    def test_backup_contains_db_and_pdfs(self, test_config, order_service, actors, order_request):
        order = order_service.create_order(actors["manager"], order_request())

        zip_path = BackupService(test_config).create_backup()

        assert zip_path.parent == test_config.backup_dir
        assert zip_path.name.startswith(BACKUP_PREFIX)
        with zipfile.ZipFile(zip_path) as zipf:
            names = set(zipf.namelist())
        assert "output/backoffice.db" in names
        assert f"orders/{order.bon_file_name}" in names

    def test_custom_destination(self, test_config, test_db, temp_dir):
        destination = temp_dir / "elsewhere"
        zip_path = BackupService(test_config, destination).create_backup()
        assert zip_path.parent == destination

    def test_rotation_keeps_newest(self, test_config, test_db):
        test_config.backup_retention_count = 2
        service = BackupService(test_config)

        created = [service.create_backup() for _ in range(4)]

        remaining = sorted(test_config.backup_dir.glob(f"{BACKUP_PREFIX}*.zip"))
        assert len(remaining) == 2
        assert created[-1] in remaining

    def test_zero_retention_keeps_everything(self, test_config, test_db):
        test_config.backup_retention_count = 0
        service = BackupService(test_config)
        for _ in range(3):
            service.create_backup()
        assert len(list(test_config.backup_dir.glob("*.zip"))) == 3
