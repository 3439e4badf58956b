"""
Settings for the test suite.
"""
from core.settings.base import *  # noqa: F401,F403

SECRET_KEY = "test-secret-key"
DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    **STORAGES,  # noqa: F405
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

PRODUCTION_PAYMENT_GATEWAY = "apps.production.services.payment_gateway.SandboxPaymentGateway"
PRODUCTION_SWEEP_RETRY_DELAY_SECONDS = 0
