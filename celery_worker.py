# celery_worker.py
from celery.schedules import crontab

from app import create_app
from celery_config import create_celery_app
from logging_config import get_logger

logger = get_logger(__name__)

# Create Celery instance with shared configuration
celery = create_celery_app(__name__)

# The Flask app provides context (config, db session, services) for tasks
flask_app = create_app()


# Run every task inside the Flask app context
class ContextTask(celery.Task):
    def __call__(self, *args, **kwargs):
        with flask_app.app_context():
            return self.run(*args, **kwargs)


celery.Task = ContextTask

# --- Celery Beat Schedule ---
celery.conf.beat_schedule = {
    'remind-referrals-due-for-qualification': {
        'task': 'tasks.referral_tasks.remind_referrals_due_for_qualification',
        # Daily at 9 AM UTC, ahead of the team's working day
        'schedule': crontab(hour=9, minute=0),
    },
}
celery.conf.timezone = 'UTC'

# Import tasks so they register with Celery (after the Flask app exists)
with flask_app.app_context():
    import tasks.notification_tasks  # noqa: E402,F401
    import tasks.referral_tasks  # noqa: E402,F401

logger.info("Celery tasks registered", tasks=sorted(name for name in celery.tasks if name.startswith('tasks.')))
