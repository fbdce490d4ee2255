import pytest

from ember.maintenance.expiry import deactivate_expired_rooms
from ember.maintenance.scheduler import MaintenanceScheduler


@pytest.mark.asyncio
async def test_scheduler_registers_jobs_once_and_stops():
    scheduler = MaintenanceScheduler()
    assert not scheduler.running
    scheduler.start()
    try:
        assert scheduler.running
        scheduler.schedule_every("room-expiry-sweep", deactivate_expired_rooms, minutes=15)
        scheduler.schedule_every("room-expiry-sweep", deactivate_expired_rooms, minutes=5)
        assert scheduler.job_ids() == ["room-expiry-sweep"]
    finally:
        scheduler.shutdown()
    assert not scheduler.running
    scheduler.shutdown()
