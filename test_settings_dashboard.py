import pytest

from training_portal.services.content_service import content_service
from training_portal.services.dashboard_service import DashboardService
from training_portal.services.generated_id_service import generated_id_service
from training_portal.services.settings_service import SettingsService

# Async tests
pytestmark = pytest.mark.asyncio


@pytest.fixture
def settings(fake_db):
    svc = SettingsService()
    svc.db = fake_db
    return svc


async def test_setting_created_then_updated(settings, fake_db):
    assert await settings.get_setting("registration_open", default=True) is True

    ok, error = await settings.set_setting("registration_open", False, description="Toggle sign-ups", updated_by="admin_1")
    assert ok, error
    assert await settings.get_setting("registration_open") is False

    ok, error = await settings.set_setting("registration_open", True, updated_by="admin_2")
    assert ok, error
    stored = fake_db.data["system_settings"]["registration_open"]
    assert stored["value"] is True
    assert stored["description"] == "Toggle sign-ups"
    assert stored["updated_by"] == "admin_2"


async def test_blank_setting_key_rejected(settings):
    ok, error = await settings.set_setting("  ", 1)
    assert not ok
    assert error == "Setting key is required"


async def test_dashboard_counts(fake_db, monkeypatch):
    monkeypatch.setattr(content_service, "db", fake_db)
    monkeypatch.setattr(generated_id_service, "db", fake_db)
    fake_db.seed("trainees", "t1", {"is_active": True})
    fake_db.seed("trainees", "t2", {"is_active": False})
    fake_db.seed("sponsors", "sp1", {"name": "Delta", "is_active": True})
    fake_db.seed("trainee_progress", "p1", {"trainee_id": "t1", "content_id": "c1", "status": "completed"})
    fake_db.seed("generated_ids", "ST-0C0S0S1", {"type": "staff", "status": "available"})

    dashboard = DashboardService()
    dashboard.db = fake_db
    stats = await dashboard.get_statistics()

    assert stats["total_trainees"] == 2
    assert stats["active_trainees"] == 1
    assert stats["active_sponsors"] == 1
    assert stats["completed_courses"] == 1
    assert stats["total_exams"] == 0
    assert stats["generated_ids"]["available"] == 1
