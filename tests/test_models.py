"""Test data models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from wpserver.models.data_models import (
    AllocationPlan, AllocationTier, CommandResult, CredentialEntry, ReconfigureSummary,
    ResourceSnapshot, SiteRecord, format_size_mb,
)


class TestResourceSnapshot:
    """Test resource snapshot model."""

    def test_valid_snapshot(self):
        """Test creating a snapshot."""
        snapshot = ResourceSnapshot(cpu_cores=2, total_ram_mb=2048, available_disk_gb=20)

        assert snapshot.cpu_cores == 2
        assert snapshot.total_ram_gb == 2

    def test_ram_floor(self):
        """Test snapshots below 512MB are rejected."""
        with pytest.raises(ValidationError):
            ResourceSnapshot(cpu_cores=1, total_ram_mb=511, available_disk_gb=20)

    def test_zero_cores_rejected(self):
        with pytest.raises(ValidationError):
            ResourceSnapshot(cpu_cores=0, total_ram_mb=1024, available_disk_gb=20)

    def test_snapshot_is_frozen(self):
        """Test snapshots cannot be modified after capture."""
        snapshot = ResourceSnapshot(cpu_cores=2, total_ram_mb=2048, available_disk_gb=20)

        with pytest.raises(ValidationError):
            snapshot.cpu_cores = 8


class TestAllocationPlan:
    """Test allocation plan invariants."""

    def _fields(self, **overrides):
        fields = dict(
            tier=AllocationTier.SMALL,
            web_worker_count=2,
            runtime_max_children=10,
            runtime_start_servers=4,
            runtime_min_spare=2,
            runtime_max_spare=6,
            runtime_memory_limit_mb=256,
            upload_max_mb=64,
            post_max_mb=72,
            db_buffer_pool_mb=400,
            db_log_file_mb=100,
            db_max_connections=60,
            cache_max_memory_mb=128,
        )
        fields.update(overrides)
        return fields

    def test_consistent_plan(self):
        """Test a consistent plan is accepted and renders size strings."""
        plan = AllocationPlan(**self._fields())

        assert plan.memory_limit == "256M"
        assert plan.upload_max == "64M"
        assert plan.post_max == "72M"

    @pytest.mark.parametrize("overrides", [
        {"post_max_mb": 64},
        {"db_log_file_mb": 99},
        {"db_max_connections": 61},
        {"runtime_start_servers": 1},
        {"runtime_min_spare": 0},
        {"runtime_max_spare": 2},
    ])
    def test_inconsistent_plan_rejected(self, overrides):
        """Test the validator rejects broken field relations and floors."""
        with pytest.raises(ValidationError):
            AllocationPlan(**self._fields(**overrides))

    def test_format_size_mb(self):
        assert format_size_mb(512) == "512M"


class TestSiteRecord:
    """Test site record model."""

    def test_to_line(self):
        """Test registry line serialization."""
        record = SiteRecord(
            domain="Example.COM",
            database_name="wp_abc",
            database_user="wp_def",
            created_at=datetime(2024, 1, 2, 3, 4, 5),
        )

        assert record.domain == "example.com"
        assert record.to_line() == "example.com|wp_abc|wp_def|2024-01-02 03:04:05"

    def test_from_line(self):
        """Test parsing a registry line."""
        record = SiteRecord.from_line("example.com|wp_abc|wp_def|2024-01-02 03:04:05\n")

        assert record.domain == "example.com"
        assert record.database_user == "wp_def"
        assert record.created_at == datetime(2024, 1, 2, 3, 4, 5)

    def test_from_legacy_line_without_user(self):
        """Test three-column lines written without the user column."""
        record = SiteRecord.from_line("example.com|wp_abc|2024-01-02 03:04:05")

        assert record.database_name == "wp_abc"
        assert record.database_user == ""

    @pytest.mark.parametrize("line", [
        "example.com|wp_abc",
        "example.com|wp_abc|wp_def|not-a-date",
        "|wp_abc|wp_def|2024-01-02 03:04:05",
    ])
    def test_malformed_lines(self, line):
        """Test malformed lines raise ValueError."""
        with pytest.raises(ValueError):
            SiteRecord.from_line(line)

    def test_delimiter_in_values_rejected(self):
        with pytest.raises(ValidationError):
            SiteRecord(domain="example.com", database_name="wp|abc", database_user="u")


class TestCredentialEntry:
    """Test credential entry model."""

    def test_render_block(self):
        """Test the block keeps field order and ends with the separator."""
        entry = CredentialEntry(
            subject="example.com",
            fields={"Database Name": "wp_abc", "Database Password": "s3cret"},
            created_at=datetime(2024, 1, 2, 3, 4, 5),
        )

        assert entry.render() == (
            "\n"
            "## example.com\n"
            "Database Name: wp_abc\n"
            "Database Password: s3cret\n"
            "Created: 2024-01-02 03:04:05\n"
            "---\n"
        )

    def test_multiline_values_rejected(self):
        """Test values that would break the block format are rejected."""
        with pytest.raises(ValidationError):
            CredentialEntry(subject="example.com", fields={"Password": "a\nb"})

        with pytest.raises(ValidationError):
            CredentialEntry(subject="", fields={})


class TestResultModels:
    """Test supporting result models."""

    def test_command_result_ok(self):
        assert CommandResult(command=["true"], returncode=0).ok
        assert not CommandResult(command=["false"], returncode=1).ok

    def test_reconfigure_summary_total(self):
        summary = ReconfigureSummary(succeeded=["a.com"], failed={"b.com": "nginx -t failed"})

        assert summary.total == 2
