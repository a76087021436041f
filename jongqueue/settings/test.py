import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key-not-for-production')
os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

from .base import *

DEBUG = False

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

STORAGES['staticfiles'] = {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'}

AXES_ENABLED = False

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
