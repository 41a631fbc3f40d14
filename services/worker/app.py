from celery import Celery

from core.settings import get_settings


def create_app() -> Celery:
    settings = get_settings()
    celery_app = Celery(
        "r2-uploader-worker",
        broker=settings.queue.broker_url,
        backend=settings.queue.result_backend,
    )
    celery_app.conf.task_default_queue = "r2-uploader"
    celery_app.conf.task_routes = {
        "r2_uploader.*": {"queue": "r2-uploader"},
    }
    celery_app.autodiscover_tasks(["services.worker"])
    return celery_app


app = create_app()


@app.task(name="r2_uploader.health")
def health() -> str:
    return "ok"


__all__ = ["app", "create_app", "health"]
