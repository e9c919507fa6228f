"""
WSGI config for garment_ops project.
"""

import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'garment_ops.settings')
application = get_wsgi_application()
