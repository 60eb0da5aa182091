import os
from django.core.asgi import get_asgi_application

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.settings')

# Plain HTTP application; voice and payment webhooks are request/response only
application = get_asgi_application()
