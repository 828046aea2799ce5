"""Tests for maintenance tasks, completion, service history and the dashboard."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from conftest import subscribe
from rideway.models.maintenance import MaintenanceTask
from rideway.services.errors import NotFoundError, ValidationError
from rideway.services.maintenance_service import (
    add_service_record,
    batch_create_tasks,
    build_dashboard,
    complete_task,
    create_task,
    delete_service_record,
    get_owned_task,
    list_service_records,
    list_tasks,
    set_task_archived,
    update_service_record,
    update_task,
)
from rideway.services.motorcycle_service import create_motorcycle, get_owned_motorcycle


class TestCreateTask:
    """Initial scheduling."""

    @pytest.mark.asyncio
    async def test_counts_from_current_mileage_and_today(self, db_session, test_user, test_motorcycle):
        task = await create_task(
            db_session, test_user.id, test_motorcycle.id,
            name="Oil Change", interval_miles=3000, interval_days=180, priority="high",
        )

        assert task.next_due_odometer == 8900
        assert task.base_odometer == 5900
        assert task.next_due_date == task.base_date.date() + timedelta(days=180)
        assert task.priority == "high"

    @pytest.mark.asyncio
    async def test_invalid_priority_rejected(self, db_session, test_user, test_motorcycle):
        with pytest.raises(ValidationError):
            await create_task(db_session, test_user.id, test_motorcycle.id, name="X", priority="urgent")

    @pytest.mark.asyncio
    async def test_negative_interval_rejected(self, db_session, test_user, test_motorcycle):
        with pytest.raises(ValidationError):
            await create_task(db_session, test_user.id, test_motorcycle.id, name="X", interval_miles=-5)

    @pytest.mark.asyncio
    async def test_unknown_motorcycle(self, db_session, test_user):
        with pytest.raises(NotFoundError):
            await create_task(db_session, test_user.id, "missing", name="X", interval_miles=100)

    @pytest.mark.asyncio
    async def test_archive_hides_task(self, db_session, test_user, test_motorcycle):
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Chain", interval_miles=500)

        await set_task_archived(db_session, test_user.id, task.id)

        assert await list_tasks(db_session, test_user.id, test_motorcycle.id) == []
        all_tasks = await list_tasks(db_session, test_user.id, test_motorcycle.id, include_archived=True)
        assert [t.id for t in all_tasks] == [task.id]

        await set_task_archived(db_session, test_user.id, task.id, archived=False)
        assert len(await list_tasks(db_session, test_user.id, test_motorcycle.id)) == 1


class TestCompleteTask:
    """Completion records the service and advances the schedule."""

    @pytest.mark.asyncio
    async def test_reset_schedule(self, db_session, test_user, test_motorcycle, dispatcher):
        task = await create_task(
            db_session, test_user.id, test_motorcycle.id, name="Oil Change", interval_miles=3000
        )

        result = await complete_task(
            db_session, test_user.id, task.id,
            service_mileage=6000, service_date=datetime(2024, 6, 1, 9, 0),
            cost=Decimal("85.50"), dispatcher=dispatcher,
        )

        assert result.next_due_odometer == 9000
        assert result.record.notes == "Completed Oil Change"
        assert result.record.is_scheduled
        assert result.record.resets_interval
        assert result.record.next_due_odometer == 9000

        task = await get_owned_task(db_session, test_user.id, task.id)
        assert task.next_due_odometer == 9000
        assert task.base_odometer == 6000
        motorcycle = await get_owned_motorcycle(db_session, test_user.id, test_motorcycle.id)
        assert motorcycle.current_mileage == 6000

    @pytest.mark.asyncio
    async def test_maintain_schedule_when_early(self, db_session, test_user, test_motorcycle, dispatcher):
        task = await create_task(
            db_session, test_user.id, test_motorcycle.id,
            name="Oil Change", interval_miles=3000, base_odometer=3000,
        )

        result = await complete_task(
            db_session, test_user.id, task.id,
            service_mileage=5950, reset_schedule=False, dispatcher=dispatcher,
        )

        assert result.next_due_odometer == 6000
        assert not result.record.resets_interval

    @pytest.mark.asyncio
    async def test_defaults_to_current_mileage(self, db_session, test_user, test_motorcycle, dispatcher):
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Chain", interval_miles=500)

        result = await complete_task(db_session, test_user.id, task.id, dispatcher=dispatcher)

        assert result.record.mileage == 5900
        assert result.next_due_odometer == 6400

    @pytest.mark.asyncio
    async def test_mileage_below_current_rejected(self, db_session, test_user, test_motorcycle, dispatcher):
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Chain", interval_miles=500)

        with pytest.raises(ValidationError, match="cannot be less than current motorcycle mileage"):
            await complete_task(db_session, test_user.id, task.id, service_mileage=5000, dispatcher=dispatcher)

        assert await list_service_records(db_session, test_user.id) == []

    @pytest.mark.asyncio
    async def test_dispatches_maintenance_completed(
        self, db_session, test_user, test_motorcycle, dispatcher, make_integration, http_handler
    ):
        await make_integration("webhook", {"url": "https://hooks.example.com"}, subscribe("maintenance_completed"))
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Oil Change", interval_miles=3000)

        result = await complete_task(
            db_session, test_user.id, task.id, service_mileage=6000,
            cost=Decimal("85.50"), notes="Used synthetic oil", dispatcher=dispatcher,
        )

        assert result.dispatch.success
        [body] = http_handler.bodies()
        assert body["event"] == "maintenance_completed"
        assert body["record"]["mileage"] == 6000
        assert body["record"]["cost"] == 85.5
        assert body["record"]["notes"] == "Used synthetic oil"
        assert body["task"]["name"] == "Oil Change"

    @pytest.mark.asyncio
    async def test_failed_dispatch_keeps_completion(
        self, db_session, test_user, test_motorcycle, dispatcher, make_integration, http_handler
    ):
        await make_integration("webhook", {"url": "https://hooks.example.com"}, subscribe("maintenance_completed"))
        http_handler.responses["hooks.example.com"] = 503
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Oil Change", interval_miles=3000)

        result = await complete_task(db_session, test_user.id, task.id, dispatcher=dispatcher)

        assert not result.dispatch.success
        assert len(await list_service_records(db_session, test_user.id)) == 1

    @pytest.mark.asyncio
    async def test_aware_service_date_stored_as_naive_utc(self, db_session, test_user, test_motorcycle, dispatcher):
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Chain", interval_miles=500)
        local = datetime(2024, 6, 1, 11, 0, tzinfo=timezone(timedelta(hours=2)))

        result = await complete_task(db_session, test_user.id, task.id, service_date=local, dispatcher=dispatcher)

        assert result.record.date == datetime(2024, 6, 1, 9, 0)
        assert result.record.date.tzinfo is None
        task = await get_owned_task(db_session, test_user.id, task.id)
        assert task.base_date == datetime(2024, 6, 1, 9, 0)


class TestServiceRecords:
    """Manually entered service history."""

    @pytest.mark.asyncio
    async def test_add_record_leaves_schedule_alone(self, db_session, test_user, test_motorcycle):
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Chain", interval_miles=500)

        record = await add_service_record(
            db_session, test_user.id, test_motorcycle.id,
            service_date=datetime(2023, 9, 1), mileage=4000, task_id=task.id, cost=Decimal("20"),
        )

        assert not record.is_scheduled
        assert not record.resets_interval
        task = await get_owned_task(db_session, test_user.id, task.id)
        assert task.next_due_odometer == 6400

    @pytest.mark.asyncio
    async def test_mileage_above_current_rejected(self, db_session, test_user, test_motorcycle):
        with pytest.raises(ValidationError):
            await add_service_record(
                db_session, test_user.id, test_motorcycle.id,
                service_date=datetime(2023, 9, 1), mileage=7000,
            )

    @pytest.mark.asyncio
    async def test_task_from_other_motorcycle_rejected(self, db_session, test_user, test_motorcycle, dispatcher):
        other = await create_motorcycle(
            db_session, test_user.id, name="Tracer", make="Yamaha", model="Tracer 9", year=2023,
            current_mileage=100, dispatcher=dispatcher,
        )
        task = await create_task(db_session, test_user.id, other.id, name="Chain", interval_miles=500)

        with pytest.raises(ValidationError):
            await add_service_record(
                db_session, test_user.id, test_motorcycle.id,
                service_date=datetime(2023, 9, 1), task_id=task.id,
            )

    @pytest.mark.asyncio
    async def test_records_newest_first(self, db_session, test_user, test_motorcycle):
        for day in (1, 20, 10):
            await add_service_record(
                db_session, test_user.id, test_motorcycle.id, service_date=datetime(2024, 3, day)
            )

        records = await list_service_records(db_session, test_user.id, test_motorcycle.id)

        assert [r.date.day for r in records] == [20, 10, 1]


class TestUpdateTask:
    """Settings edits recompute the affected side of the schedule."""

    @pytest.mark.asyncio
    async def test_new_mile_interval_restarts_from_current_mileage(self, db_session, test_user, test_motorcycle):
        task = await create_task(
            db_session, test_user.id, test_motorcycle.id,
            name="Oil Change", interval_miles=3000, interval_days=180,
        )
        due_date = task.next_due_date

        task = await update_task(db_session, test_user.id, task.id, interval_miles=4000, priority="high")

        assert task.interval_miles == 4000
        assert task.next_due_odometer == 9900
        assert task.base_odometer == 5900
        assert task.next_due_date == due_date
        assert task.priority == "high"

    @pytest.mark.asyncio
    async def test_clearing_day_interval_clears_due_date(self, db_session, test_user, test_motorcycle):
        task = await create_task(
            db_session, test_user.id, test_motorcycle.id,
            name="Inspection", interval_miles=6000, interval_days=365,
        )

        task = await update_task(db_session, test_user.id, task.id, interval_days=None)

        assert task.next_due_date is None
        assert task.next_due_odometer == 11900

    @pytest.mark.asyncio
    async def test_explicit_due_mileage_implies_interval(self, db_session, test_user, test_motorcycle):
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Chain", interval_miles=500)

        task = await update_task(db_session, test_user.id, task.id, next_due_odometer=6900)

        assert task.next_due_odometer == 6900
        assert task.interval_miles == 1000

    @pytest.mark.asyncio
    async def test_due_mileage_not_above_current_rejected(self, db_session, test_user, test_motorcycle):
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Chain", interval_miles=500)

        with pytest.raises(ValidationError, match="greater than current motorcycle mileage"):
            await update_task(db_session, test_user.id, task.id, next_due_odometer=5900)

    @pytest.mark.asyncio
    async def test_rename_keeps_schedule(self, db_session, test_user, test_motorcycle):
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Chain", interval_miles=500)

        task = await update_task(db_session, test_user.id, task.id, name="Chain lube")

        assert task.name == "Chain lube"
        assert task.next_due_odometer == 6400

    @pytest.mark.asyncio
    async def test_invalid_values_rejected(self, db_session, test_user, test_motorcycle):
        task = await create_task(db_session, test_user.id, test_motorcycle.id, name="Chain", interval_miles=500)

        with pytest.raises(ValidationError):
            await update_task(db_session, test_user.id, task.id, name="")
        with pytest.raises(ValidationError):
            await update_task(db_session, test_user.id, task.id, archived=True)

    @pytest.mark.asyncio
    async def test_unknown_task(self, db_session, test_user):
        with pytest.raises(NotFoundError):
            await update_task(db_session, test_user.id, "missing", name="X")


class TestBatchImport:
    @pytest.mark.asyncio
    async def test_imports_valid_items_and_reports_the_rest(self, db_session, test_user, test_motorcycle):
        result = await batch_create_tasks(
            db_session,
            test_user.id,
            [
                {"motorcycle_id": test_motorcycle.id, "name": "Oil Change", "interval_miles": 3000},
                {"motorcycle_id": test_motorcycle.id, "name": "Coolant", "interval_days": 730},
                {"motorcycle_id": test_motorcycle.id, "name": None},
                {"motorcycle_id": "missing", "name": "Brake fluid", "interval_days": 365},
                {"motorcycle_id": test_motorcycle.id, "name": "Tyres", "priority": "urgent"},
            ],
        )

        assert [t.name for t in result.tasks] == ["Oil Change", "Coolant"]
        assert result.tasks[0].next_due_odometer == 8900
        assert result.tasks[1].next_due_date is not None
        assert len(result.errors) == 3
        assert 'Task "unnamed" is missing required fields' in result.errors
        assert 'Motorcycle not found for task "Brake fluid"' in result.errors
        assert len(await list_tasks(db_session, test_user.id, test_motorcycle.id)) == 2

    @pytest.mark.asyncio
    async def test_nothing_valid(self, db_session, test_user):
        with pytest.raises(ValidationError, match="No valid tasks to import"):
            await batch_create_tasks(db_session, test_user.id, [{"motorcycle_id": "missing", "name": "X"}])

    @pytest.mark.asyncio
    async def test_empty_input(self, db_session, test_user):
        with pytest.raises(ValidationError, match="No tasks provided"):
            await batch_create_tasks(db_session, test_user.id, [])


class TestServiceRecordCorrections:
    @pytest.mark.asyncio
    async def test_correct_fields(self, db_session, test_user, test_motorcycle):
        record = await add_service_record(
            db_session, test_user.id, test_motorcycle.id, service_date=datetime(2024, 3, 1), mileage=4000
        )

        record = await update_service_record(
            db_session, test_user.id, record.id,
            mileage=4100, cost=Decimal("45.00"), notes="Front pads",
        )

        assert record.mileage == 4100
        assert record.cost == Decimal("45.00")
        assert record.notes == "Front pads"
        assert record.date == datetime(2024, 3, 1)

    @pytest.mark.asyncio
    async def test_correction_cannot_exceed_current_mileage(self, db_session, test_user, test_motorcycle):
        record = await add_service_record(
            db_session, test_user.id, test_motorcycle.id, service_date=datetime(2024, 3, 1), mileage=4000
        )

        with pytest.raises(ValidationError):
            await update_service_record(db_session, test_user.id, record.id, mileage=9000)

    @pytest.mark.asyncio
    async def test_delete(self, db_session, test_user, test_motorcycle):
        record = await add_service_record(
            db_session, test_user.id, test_motorcycle.id, service_date=datetime(2024, 3, 1)
        )

        await delete_service_record(db_session, test_user.id, record.id)

        assert await list_service_records(db_session, test_user.id) == []
        with pytest.raises(NotFoundError):
            await delete_service_record(db_session, test_user.id, record.id)

    @pytest.mark.asyncio
    async def test_other_users_record_not_found(self, db_session, test_user, test_motorcycle):
        record = await add_service_record(
            db_session, test_user.id, test_motorcycle.id, service_date=datetime(2024, 3, 1)
        )

        with pytest.raises(NotFoundError):
            await update_service_record(db_session, "someone-else", record.id, notes="x")


class TestDashboard:
    @pytest.mark.asyncio
    async def test_upcoming_and_overdue(self, db_session, test_user, test_motorcycle):
        today = date(2024, 6, 15)
        db_session.add_all(
            [
                MaintenanceTask(
                    motorcycle_id=test_motorcycle.id, name="Overdue oil", interval_miles=3000,
                    next_due_odometer=5800, priority="low",
                ),
                MaintenanceTask(
                    motorcycle_id=test_motorcycle.id, name="Inspection", interval_days=365,
                    next_due_date=today + timedelta(days=5),
                ),
            ]
            + [
                MaintenanceTask(
                    motorcycle_id=test_motorcycle.id, name=f"Task {i}", interval_miles=10000,
                    next_due_odometer=7000 + i * 100,
                )
                for i in range(5)
            ]
        )
        await db_session.commit()

        dashboard = await build_dashboard(db_session, test_user.id, today=today)

        assert dashboard["overdueCount"] == 1
        assert [m.id for m in dashboard["motorcycles"]] == [test_motorcycle.id]
        upcoming = dashboard["upcomingMaintenance"]
        assert len(upcoming) == 5
        assert upcoming[0]["task"] == "Overdue oil"
        assert upcoming[0]["priority"] == "high"
        assert upcoming[1]["task"] == "Inspection"
        assert upcoming[2]["task"] == "Task 0"

    @pytest.mark.asyncio
    async def test_empty_garage(self, db_session, test_user):
        dashboard = await build_dashboard(db_session, test_user.id)
        assert dashboard == {"motorcycles": [], "upcomingMaintenance": [], "overdueCount": 0}
