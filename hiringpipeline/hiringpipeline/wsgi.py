"""
WSGI config for the hiring pipeline project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hiringpipeline.settings')

application = get_wsgi_application()
