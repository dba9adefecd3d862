"""Shared fixtures: a kiosk app on a throwaway data directory with a fake radio."""
import base64

import pytest

from app import create_app
from config import TestingConfig
from services.wireless import LoggingAccessPoint, LoggingDnsResponder

ADMIN_PASSWORD = 'organizer1'


def basic_auth(password, username='admin'):
    token = base64.b64encode(f'{username}:{password}'.encode('utf-8')).decode('ascii')
    return {'Authorization': f'Basic {token}'}


@pytest.fixture
def app_config(tmp_path):
    return type('KioskTestConfig', (TestingConfig,), {
        'DATA_DIR': str(tmp_path / 'data'),
        'BACKUP_DIR': str(tmp_path / 'backups'),
    })


@pytest.fixture
def access_point():
    return LoggingAccessPoint()


@pytest.fixture
def dns():
    return LoggingDnsResponder()


@pytest.fixture
def app(app_config, access_point, dns):
    return create_app(app_config, access_point=access_point, dns=dns, restart=lambda: None)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def kiosk(app):
    return app.extensions['kiosk']


@pytest.fixture
def admin_headers(client):
    resp = client.post('/api/admin/setup', json={'pass': ADMIN_PASSWORD})
    assert resp.status_code == 200
    return basic_auth(ADMIN_PASSWORD)
