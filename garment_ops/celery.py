# garment_ops/celery.py
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "garment_ops.settings")

app = Celery("garment_ops")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
