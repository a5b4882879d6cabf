"""Tests for the weekly quick entry grid."""

from datetime import date, datetime, time, timedelta

import pytest  # type: ignore[import-not-found]

from kimai.core.config import ConfigManager
from kimai.core.exceptions import ValidationError
from kimai.core.models import Timesheet, User
from kimai.core.storage import StorageManager
from kimai.quick_entry import QuickEntryModel, QuickEntryService
from kimai.timesheet.service import TimesheetService

MONDAY = date(2024, 5, 6)


@pytest.fixture  # type: ignore[misc]
def service(storage: StorageManager, config: ConfigManager) -> QuickEntryService:
    return QuickEntryService(storage, config, TimesheetService(storage, config))


def book(storage: StorageManager, records, activity_id: int, begin: datetime, hours: int) -> Timesheet:  # type: ignore[no-untyped-def]
    return storage.save_timesheet(
        Timesheet(
            user_id=records.user.id,
            project_id=records.project.id,
            activity_id=activity_id,
            begin=begin,
            end=begin + timedelta(hours=hours),
            duration=hours * 3600,
        )
    )


class TestQuickEntryModel:
    """Test the grid row."""

    def test_empty_row_is_prototype(self) -> None:
        model = QuickEntryModel()

        assert model.is_prototype
        assert model.key is None
        assert not model.has_new_timesheet()
        assert not model.has_timesheet_with_duration()
        assert model.get_latest_entry() is None
        assert model.get_first_entry() is None

    def test_row_with_saved_timesheet(self, records) -> None:  # type: ignore[no-untyped-def]
        model = QuickEntryModel(records.user, records.project, records.activity)
        saved = Timesheet(user_id=1, project_id=1, activity_id=1, begin=datetime(2024, 5, 7, 8), id=5, duration=60)
        new = Timesheet(user_id=1, project_id=1, activity_id=1, begin=datetime(2024, 5, 6, 8), duration=120)
        model.set_timesheets([saved, new])

        assert not model.is_prototype
        assert model.key == f"{records.project.id}_{records.activity.id}"
        assert model.has_existing_timesheet()
        assert model.get_new_timesheets() == [new]
        assert model.has_new_timesheet()
        assert model.has_timesheet_with_duration()
        assert model.get_first_entry() is new
        assert model.get_latest_entry() is saved
        assert model.get_timesheet(date(2024, 5, 7)) is saved


class TestQuickEntryService:
    """Test building and saving a week."""

    def test_empty_week_is_padded_with_prototypes(self, service: QuickEntryService, records) -> None:  # type: ignore[no-untyped-def]
        week = service.build_week(records.user, date(2024, 5, 8))

        assert week.start == MONDAY
        assert week.days[-1] == date(2024, 5, 12)
        assert len(week.rows) == 3
        assert all(row.is_prototype for row in week.rows)
        first = week.rows[0].get_timesheet(MONDAY)
        assert first is not None
        assert first.begin == datetime.combine(MONDAY, time(8, 0))
        assert first.duration == 0

    def test_second_record_on_same_day_gets_own_row(self, service: QuickEntryService, storage: StorageManager, records) -> None:  # type: ignore[no-untyped-def]
        book(storage, records, records.activity.id, datetime(2024, 5, 6, 8), 2)
        book(storage, records, records.activity.id, datetime(2024, 5, 6, 13), 1)
        book(storage, records, records.activity.id, datetime(2024, 5, 7, 8), 3)

        week = service.build_week(records.user, MONDAY)

        filled = [row for row in week.rows if row.has_existing_timesheet()]
        assert len(filled) == 2
        durations = sorted(len([t for t in row.timesheets if t.id is not None]) for row in filled)
        assert durations == [1, 2]
        for row in filled:
            assert len(row.timesheets) == 7
        # prototypes sort last
        assert week.rows[-1].is_prototype

    def test_recent_combinations_are_added(self, service: QuickEntryService, storage: StorageManager, records) -> None:  # type: ignore[no-untyped-def]
        book(storage, records, records.global_activity.id, datetime(2024, 4, 24, 8), 1)
        # too old for the recent window
        book(storage, records, records.activity.id, datetime(2023, 1, 2, 8), 1)

        week = service.build_week(records.user, MONDAY)

        named = [row for row in week.rows if row.activity is not None]
        assert [row.activity.name for row in named] == ["Support"]
        assert not named[0].has_existing_timesheet()

    def test_apply_and_save(self, service: QuickEntryService, storage: StorageManager, records) -> None:  # type: ignore[no-untyped-def]
        week = service.build_week(records.user, MONDAY)
        service.apply_row(
            week, records.user, records.project.id, records.activity.id,
            {MONDAY: 3600, date(2024, 5, 8): 5400, date(2024, 5, 9): None},
        )

        saved, deleted = service.save_week(records.user, week)

        assert (saved, deleted) == (2, 0)
        stored = sorted(storage.load_timesheets(records.user.id), key=lambda t: t.begin)
        assert [t.duration for t in stored] == [3600, 5400]
        assert stored[0].begin == datetime(2024, 5, 6, 8)
        assert stored[0].end == datetime(2024, 5, 6, 9)

    def test_save_updates_and_deletes(self, service: QuickEntryService, storage: StorageManager, records) -> None:  # type: ignore[no-untyped-def]
        changed = book(storage, records, records.activity.id, datetime(2024, 5, 6, 8), 2)
        removed = book(storage, records, records.activity.id, datetime(2024, 5, 7, 8), 1)

        week = service.build_week(records.user, MONDAY)
        service.apply_row(
            week, records.user, records.project.id, records.activity.id,
            {MONDAY: 3 * 3600, date(2024, 5, 7): 0},
        )
        saved, deleted = service.save_week(records.user, week)

        assert (saved, deleted) == (1, 1)
        assert storage.get_timesheet(removed.id) is None
        updated = storage.get_timesheet(changed.id)
        assert updated is not None
        assert updated.duration == 3 * 3600
        assert updated.end == datetime(2024, 5, 6, 11)

    def test_apply_unknown_project(self, service: QuickEntryService, records) -> None:  # type: ignore[no-untyped-def]
        week = service.build_week(records.user, MONDAY)

        with pytest.raises(ValidationError):
            service.apply_row(week, records.user, 999, records.activity.id, {MONDAY: 60})

    def test_apply_day_outside_week(self, service: QuickEntryService, records) -> None:  # type: ignore[no-untyped-def]
        week = service.build_week(records.user, MONDAY)

        with pytest.raises(ValidationError, match="not part of the week"):
            service.apply_row(week, records.user, records.project.id, records.activity.id, {date(2024, 5, 13): 60})

    def test_unsaved_user(self, service: QuickEntryService, records) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(ValueError, match="stored user"):
            service.build_week(User(username="ghost", email="ghost@example.com"), MONDAY)
