from orderhub.core.celery_app import celery_app


def test_celery_app_configuration():
    assert celery_app.main == "orderhub"
    assert celery_app.conf.task_serializer == "json"
    assert "json" in celery_app.conf.accept_content
    assert celery_app.conf.timezone == "UTC"


def test_maintenance_tasks_are_routed_and_scheduled():
    routes = celery_app.conf.task_routes
    schedule = celery_app.conf.beat_schedule

    assert routes["cleanup_event_store"] == {"queue": "maintenance_low"}
    assert schedule["daily-event-store-cleanup"]["task"] == "cleanup_event_store"


def test_tasks_module_exports_celery_app():
    from orderhub import tasks

    assert tasks.celery_app is celery_app
    assert "cleanup_event_store" in celery_app.tasks
