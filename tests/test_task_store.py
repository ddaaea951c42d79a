# tests/test_task_store.py

from __future__ import annotations

import json
from datetime import UTC, datetime

from backup_keeper.storage.local_store import LocalFolderStore
from backup_keeper.tasks.task_models import NEVER, SchedulePeriod, TaskMetadata
from backup_keeper.tasks.task_store import SCHEDULE_FILE_NAME, ScheduleStore


def test_load_reads_legacy_wire_format(remote) -> None:
    remote.put_text(
        "config",
        SCHEDULE_FILE_NAME,
        json.dumps(
            {
                "DatabaseBackup": {
                    "lastUpdate": "2024-03-14T10:00:00.0000000Z",
                    "Schedule": "daily",
                    "OverrideAppHealthStatus": False,
                    "disableUpdates": True,
                },
                "GrafanaBackup": {"lastUpdate": "", "schedule": "HOURLY", "OverrideAppHealthStatus": True},
            }
        ),
    )

    schedule = ScheduleStore(remote, scope="config").load()

    db = schedule["DatabaseBackup"]
    assert db.last_run_at == datetime(2024, 3, 14, 10, 0, tzinfo=UTC)
    assert db.schedule == SchedulePeriod.DAILY
    assert db.disabled is True
    assert db.skip_health_gate is False

    grafana = schedule["GrafanaBackup"]
    assert grafana.last_run_at == NEVER
    assert grafana.schedule == SchedulePeriod.HOURLY
    assert grafana.skip_health_gate is True


def test_missing_unreadable_or_malformed_document_is_empty(remote) -> None:
    store = ScheduleStore(remote, scope="config")
    assert store.load() == {}

    remote.put_text("config", SCHEDULE_FILE_NAME, "{not json")
    assert store.load() == {}

    remote.put_text("config", SCHEDULE_FILE_NAME, json.dumps(["not", "a", "mapping"]))
    assert store.load() == {}

    remote.put_text("config", SCHEDULE_FILE_NAME, json.dumps({"A": {"Schedule": "DAILY"}}))
    remote.fail_read = True
    assert store.load() == {}

    remote.fail_read = False
    remote.raise_on_find = True
    assert store.load() == {}


def test_malformed_entries_are_dropped_individually(remote) -> None:
    remote.put_text(
        "config",
        SCHEDULE_FILE_NAME,
        json.dumps({"Broken": "DAILY", "Fine": {"lastUpdate": "2024-01-01T00:00:00Z", "Schedule": "WEEKLY"}}),
    )

    schedule = ScheduleStore(remote, scope="config").load()

    assert list(schedule) == ["Fine"]


def test_save_then_load_keeps_unknown_schedule_value(remote) -> None:
    store = ScheduleStore(remote, scope="config")
    ts = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)
    store.save(
        {
            "A": TaskMetadata(last_run_at=ts, schedule=SchedulePeriod.WEEKLY, skip_health_gate=True),
            "B": TaskMetadata(last_run_at=ts, schedule="FORTNIGHTLY", disabled=True),
        }
    )

    doc = json.loads(remote.text("config", SCHEDULE_FILE_NAME))
    assert doc["A"] == {
        "lastUpdate": "2024-03-15T12:00:00+00:00",
        "Schedule": "WEEKLY",
        "OverrideAppHealthStatus": True,
        "disableUpdates": False,
    }
    assert remote.uploads == [("config", SCHEDULE_FILE_NAME, "application/json")]

    loaded = store.load()
    assert loaded["B"].schedule == "FORTNIGHTLY"
    assert loaded["B"].disabled is True


def test_failed_save_leaves_previous_document(remote) -> None:
    store = ScheduleStore(remote, scope="config")
    ts = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)
    store.save({"A": TaskMetadata(last_run_at=ts, schedule=SchedulePeriod.DAILY)})

    remote.fail_upload = True
    res = store.save({"A": TaskMetadata(last_run_at=NEVER, schedule=SchedulePeriod.HOURLY)})

    assert not res.ok
    assert store.load()["A"].last_run_at == ts


def test_round_trip_through_local_folder_store(tmp_path) -> None:
    store = ScheduleStore(LocalFolderStore(tmp_path / "remote"), scope="config")
    ts = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)

    assert store.save({"LogBackup": TaskMetadata(last_run_at=ts, schedule=SchedulePeriod.HOURLY)}).ok
    assert store.save({"LogBackup": TaskMetadata(last_run_at=ts, schedule=SchedulePeriod.DAILY)}).ok

    assert (tmp_path / "remote" / "config" / SCHEDULE_FILE_NAME).is_file()
    assert store.load()["LogBackup"].schedule == SchedulePeriod.DAILY


def test_min_date_with_local_offset_loads_as_never_run(remote) -> None:
    remote.put_text(
        "config",
        SCHEDULE_FILE_NAME,
        json.dumps(
            {
                "A": {"lastUpdate": "0001-01-01T00:00:00.0000000+02:00", "Schedule": "DAILY"},
                "B": {"lastUpdate": "2024-03-14T10:00:00Z", "Schedule": "HOURLY"},
            }
        ),
    )

    schedule = ScheduleStore(remote, scope="config").load()

    assert schedule["A"].last_run_at == NEVER
    assert schedule["B"].last_run_at == datetime(2024, 3, 14, 10, 0, tzinfo=UTC)


def test_hand_edited_string_flags(remote) -> None:
    remote.put_text(
        "config",
        SCHEDULE_FILE_NAME,
        json.dumps(
            {
                "Off": {"Schedule": "DAILY", "disableUpdates": "false", "OverrideAppHealthStatus": "0"},
                "On": {"Schedule": "DAILY", "disableUpdates": "True", "OverrideAppHealthStatus": 1},
            }
        ),
    )

    schedule = ScheduleStore(remote, scope="config").load()

    assert schedule["Off"].disabled is False
    assert schedule["Off"].skip_health_gate is False
    assert schedule["On"].disabled is True
    assert schedule["On"].skip_health_gate is True


def test_read_raising_is_an_empty_schedule(remote) -> None:
    remote.put_text("config", SCHEDULE_FILE_NAME, json.dumps({"A": {"Schedule": "DAILY"}}))
    remote.raise_on_read = True

    assert ScheduleStore(remote, scope="config").load() == {}


def test_upload_raising_is_a_failed_save(remote) -> None:
    remote.raise_on_upload = True
    ts = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)

    res = ScheduleStore(remote, scope="config").save({"A": TaskMetadata(last_run_at=ts, schedule=SchedulePeriod.DAILY)})

    assert not res.ok
    assert "store unreachable" in res.error
    assert remote.uploads == []
