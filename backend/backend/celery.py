import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.settings')

app = Celery('backend')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

# Task routing configuration: payment events run on their own queue
app.conf.task_routes = {
    "wallet.tasks.process_stripe_event_async": {"queue": "wallet"},
    "wallet.tasks.cleanup_webhook_event_logs": {"queue": "wallet"},

    # Default queue
    '*': {'queue': 'default'},
}

app.conf.task_default_queue = 'default'

app.conf.update(
    # Serialization settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Timezone settings
    timezone='UTC',
    enable_utc=True,

    # Task execution settings
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    # Retry settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    task_queues={
        'default': {
            'exchange': 'default',
            'routing_key': 'default',
        },
        'wallet': {
            'exchange': 'wallet',
            'routing_key': 'wallet',
        },
    },

    task_ignore_result=False,
    task_store_errors_even_if_ignored=True,
)

app.conf.beat_schedule = {
    "cleanup_webhook_logs_daily": {
        "task": "wallet.tasks.cleanup_webhook_event_logs",
        "schedule": crontab(hour=4, minute=0),
        "options": {"queue": "wallet"},
    },
}


# System health check task
@app.task(bind=True)
def health_check(self):
    """System health check task"""
    from django.db import connection, DatabaseError

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")

        return {
            'status': 'healthy',
            'timestamp': app.now(),
            'worker_id': self.request.id,
        }
    except DatabaseError as e:
        return {
            'status': 'unhealthy',
            'error': str(e),
            'timestamp': app.now(),
        }
