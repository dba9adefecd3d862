"""End-to-end HTTP scenarios against the Flask app."""
import re
import threading

import pytest

from app import create_app
from services.errors import ValidationError
from tests.conftest import ADMIN_PASSWORD, basic_auth


def seed_dock(client, headers):
    resp = client.post('/api/admin/checkpoints', headers=headers,
                       json=[{'name': 'Dock', 'token_text': 'ARRR-07', 'points': 15}])
    assert resp.status_code == 200
    return resp.get_json()


class TestAdminSetup:

    def test_bootstrap_once(self, client):
        resp = client.post('/api/admin/setup', json={'pass': 'organizer1'})
        assert resp.status_code == 200
        assert resp.get_json()['ok'] is True

        again = client.post('/api/admin/setup', json={'pass': 'something-else'})
        assert again.status_code == 400
        assert again.get_json() == {'error': 'already_configured'}

    def test_concurrent_bootstrap_has_one_winner(self, kiosk):
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def bootstrap(password):
            barrier.wait()
            try:
                kiosk.bootstrap_admin(password)
                outcome = 'ok'
            except ValidationError as exc:
                outcome = exc.code
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=bootstrap, args=(p,)) for p in ('organizer1', 'organizer2')]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ['already_configured', 'ok']
        stored = kiosk.store.load('config')['admin_hash']
        assert stored == kiosk.repository.config.admin_credential_hash
        assert sum(kiosk.hasher.verify(stored, p) for p in ('organizer1', 'organizer2')) == 1

    def test_short_password_rejected(self, client):
        resp = client.post('/api/admin/setup', json={'pass': '12345'})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'weak_pass'}

    def test_non_object_body_rejected(self, client):
        resp = client.post('/api/admin/setup', json=['organizer1'])
        assert resp.get_json() == {'error': 'bad_json'}

    def test_admin_routes_open_until_configured(self, client):
        assert client.get('/api/admin/status').status_code == 200
        assert client.get('/admin').status_code == 200

    def test_admin_routes_challenge_after_configured(self, client, admin_headers):
        resp = client.get('/api/admin/status')
        assert resp.status_code == 401
        assert resp.headers['WWW-Authenticate'].startswith('Basic realm=')
        assert resp.get_json() == {'error': 'auth_required'}

        assert client.get('/api/admin/status', headers=basic_auth('wrong-pass')).status_code == 401
        assert client.get('/api/admin/status', headers=basic_auth(ADMIN_PASSWORD, 'anyone')).status_code == 200

    def test_status(self, client, admin_headers):
        data = client.get('/api/admin/status', headers=admin_headers).get_json()
        assert data['mode'] == 'setup'
        assert data['fw_version'] == data['stored_version'] == '1.0.0'
        assert data['game_ssid'] == 'SCAVENGER'


class TestAdminMutations:

    def test_game_ssid_trimmed_and_capped(self, client, admin_headers, kiosk):
        resp = client.post('/api/admin/game_ssid', headers=admin_headers, json={'ssid': '  ' + 'X' * 40 + ' '})
        assert resp.get_json()['game_ssid'] == 'X' * 31
        assert kiosk.repository.config.game_ssid == 'X' * 31

        empty = client.post('/api/admin/game_ssid', headers=admin_headers, json={'ssid': '   '})
        assert empty.status_code == 400
        assert empty.get_json() == {'error': 'empty_ssid'}

    def test_bulk_replace_drops_bad_entries(self, client, admin_headers):
        resp = client.post('/api/admin/checkpoints', headers=admin_headers, json={'items': [
            {'id': 'C1', 'name': 'Dock', 'token_text': 'ARRR-07', 'points': 15},
            {'name': 'Mast', 'token_text': 'arrr-07'},
            {'name': 'Hold', 'token_text': 'bad!code'},
            {'name': 'Deck', 'token_text': 'DECK', 'points': 0},
            {'id': 'C1', 'name': 'Galley', 'token_text': 'GALLEY'},
        ]})
        assert resp.get_json() == {'ok': True, 'count': 2, 'dropped': 3, 'persisted': True}

        items = client.get('/api/admin/checkpoints', headers=admin_headers).get_json()['items']
        assert items[0] == {'id': 'C1', 'name': 'Dock', 'token_text': 'ARRR-07', 'points': 15}
        assert items[1]['id'] != 'C1'
        assert items[1]['points'] == 10

    def test_public_items_hide_codes(self, client, admin_headers):
        seed_dock(client, admin_headers)
        items = client.get('/api/items').get_json()['items']
        assert items[0]['name'] == 'Dock'
        assert 'token_text' not in items[0]

    def test_mode_switch_and_bad_mode(self, client, admin_headers, access_point):
        resp = client.post('/api/admin/mode', headers=admin_headers, json={'mode': 'game'})
        assert resp.get_json()['mode'] == 'game'
        assert resp.get_json()['changed'] is True
        assert access_point.active_profile.is_open

        same = client.post('/api/admin/mode', headers=admin_headers, json={'mode': 'game'})
        assert same.get_json()['changed'] is False

        bad = client.post('/api/admin/mode', headers=admin_headers, json={'mode': 'party'})
        assert bad.status_code == 400
        assert bad.get_json() == {'error': 'bad_mode'}


class TestPlayerFlow:

    def test_register_twice(self, client):
        resp = client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'})
        assert resp.status_code == 200
        assert resp.get_json()['team_id']

        again = client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'})
        assert again.status_code == 409
        assert again.get_json() == {'error': 'exists'}

    def test_login(self, client):
        team_id = client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'}).get_json()['team_id']
        assert client.post('/api/login', json={'team_name': 'Crimson', 'pin': '1234'}).get_json()['team_id'] == team_id

        bad = client.post('/api/login', json={'team_name': 'Crimson', 'pin': '0000'})
        assert bad.status_code == 403
        assert bad.get_json() == {'error': 'auth'}

    def test_redeem_then_duplicate(self, client, admin_headers):
        seed_dock(client, admin_headers)
        team_id = client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'}).get_json()['team_id']

        first = client.post('/api/team/submit_code', json={'team_id': team_id, 'token': 'arrr-07'}).get_json()
        assert first['ok'] is True
        assert first['awarded'] == 15
        assert first['total'] == 15

        second = client.post('/api/team/scan_qr', json={'team_id': team_id, 'token': 'ARRR-07'}).get_json()
        assert second['ok'] is True
        assert second['duplicate'] is True
        assert second['points'] == 15

        view = client.post('/api/team/items', json={'team_id': team_id}).get_json()
        assert view['total'] == 15
        assert view['items'][0]['found'] is True

    @pytest.mark.parametrize('body, status, code', [
        ({'team_id': 'T-nope', 'token': 'ARRR-07'}, 404, 'team_not_found'),
        ({'token': 'ARRR-07'}, 404, 'team_not_found'),
    ])
    def test_redeem_errors(self, client, body, status, code):
        resp = client.post('/api/team/submit_code', json=body)
        assert resp.status_code == status
        assert resp.get_json() == {'error': code}

    def test_unknown_code(self, client, admin_headers):
        seed_dock(client, admin_headers)
        team_id = client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'}).get_json()['team_id']
        resp = client.post('/api/team/submit_code', json={'team_id': team_id, 'token': 'NOPE'})
        assert resp.status_code == 404
        assert resp.get_json() == {'error': 'no_match'}

    def test_leaderboard_tie_break(self, client, admin_headers, kiosk):
        client.post('/api/admin/checkpoints', headers=admin_headers, json=[
            {'name': 'A', 'token_text': 'AAA', 'points': 20},
            {'name': 'B', 'token_text': 'BBB', 'points': 10},
        ])
        ids = {}
        for name in ('Second', 'First', 'Third'):
            ids[name] = client.post('/api/register', json={'team_name': name, 'pin': '1234'}).get_json()['team_id']
        kiosk.repository.find_team(ids['First']).created_at = 1.0
        kiosk.repository.find_team(ids['Second']).created_at = 2.0
        kiosk.repository.find_team(ids['Third']).created_at = 3.0

        for name in ('Second', 'First'):
            for code in ('AAA', 'BBB'):
                client.post('/api/team/submit_code', json={'team_id': ids[name], 'token': code})
        client.post('/api/team/submit_code', json={'team_id': ids['Third'], 'token': 'BBB'})

        teams = client.get('/api/leaderboard').get_json()['teams']
        assert [(t['name'], t['points']) for t in teams] == [('First', 30), ('Second', 30), ('Third', 10)]


class TestCaptivePortal:

    @pytest.mark.parametrize('path', ['/', '/generate_204', '/hotspot-detect.html', '/ncsi.txt', '/no/such/page'])
    def test_setup_mode_sends_clients_to_admin(self, client, path):
        resp = client.get(path)
        assert resp.status_code == 302
        assert resp.headers['Location'].endswith('/admin')
        assert resp.headers['Cache-Control'] == 'no-store'

    def test_game_mode_sends_clients_to_player_app(self, client, admin_headers):
        client.post('/api/admin/mode', headers=admin_headers, json={'mode': 'game'})
        for path in ('/', '/gen_204', '/connecttest.txt', '/anything'):
            resp = client.get(path)
            assert resp.status_code == 302
            assert resp.headers['Location'].endswith('/app')

    def test_probe_post_is_redirected(self, client):
        assert client.post('/generate_204').status_code == 302

    def test_player_page_renders(self, client):
        resp = client.get('/app')
        assert resp.status_code == 200
        assert b'<html' in resp.data.lower()


class TestFactoryReset:

    def test_reset_keeps_hunt_data(self, client, admin_headers, kiosk):
        seed_dock(client, admin_headers)
        client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'})
        client.post('/api/admin/mode', headers=admin_headers, json={'mode': 'game'})

        resp = client.post('/api/admin/factory_reset', headers=admin_headers, json={})
        data = resp.get_json()
        assert data['ok'] is True and data['wipe_all'] is False
        assert data['restarting'] is False

        assert kiosk.modes.mode.value == 'setup'
        assert not kiosk.repository.config.is_configured
        assert len(kiosk.repository.checkpoints) == 1
        assert len(kiosk.repository.teams) == 1
        # Gate is open again for a fresh bootstrap
        assert client.post('/api/admin/setup', json={'pass': 'newpass1'}).status_code == 200

    def test_reset_wipe_all(self, client, admin_headers, kiosk):
        seed_dock(client, admin_headers)
        client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'})
        client.post('/api/admin/game_ssid', headers=admin_headers, json={'ssid': 'HUNT'})

        client.post('/api/admin/factory_reset', headers=admin_headers, json={'wipe_all': True})

        assert kiosk.repository.checkpoints == []
        assert kiosk.repository.teams == []
        assert kiosk.repository.config.game_ssid == 'SCAVENGER'
        assert kiosk.store.load('teams') is None

    @pytest.mark.parametrize('flag', ['false', 'true', 1, 'yes'])
    def test_non_boolean_wipe_all_keeps_hunt_data(self, client, admin_headers, kiosk, flag):
        seed_dock(client, admin_headers)
        client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'})

        resp = client.post('/api/admin/factory_reset', headers=admin_headers, json={'wipe_all': flag})

        assert resp.get_json()['wipe_all'] is False
        assert len(kiosk.repository.checkpoints) == 1
        assert len(kiosk.repository.teams) == 1
        assert not kiosk.repository.config.is_configured

    def test_failed_backup_blocks_reset(self, tmp_path, access_point, dns):
        from config import TestingConfig

        # A plain file where the backup directory should be
        (tmp_path / 'backups').write_text('not a directory')
        cfg = type('BackupConfig', (TestingConfig,), {
            'DATA_DIR': str(tmp_path / 'data'),
            'BACKUP_DIR': str(tmp_path / 'backups'),
            'BACKUP_BEFORE_RESET': True,
        })
        app = create_app(cfg, access_point=access_point, dns=dns)
        client = app.test_client()
        client.post('/api/admin/setup', json={'pass': ADMIN_PASSWORD})
        headers = basic_auth(ADMIN_PASSWORD)
        seed_dock(client, headers)

        resp = client.post('/api/admin/factory_reset', headers=headers, json={'wipe_all': True})

        assert resp.status_code == 500
        assert resp.get_json() == {'error': 'backup_failed'}
        kiosk = app.extensions['kiosk']
        assert kiosk.repository.config.is_configured
        assert len(kiosk.repository.checkpoints) == 1

    def test_reset_writes_backup_and_schedules_restart(self, tmp_path, access_point, dns):
        from config import TestingConfig

        restarts = []
        cfg = type('ResetConfig', (TestingConfig,), {
            'DATA_DIR': str(tmp_path / 'data'),
            'BACKUP_DIR': str(tmp_path / 'backups'),
            'BACKUP_BEFORE_RESET': True,
            'RESTART_ON_FACTORY_RESET': True,
            'RESTART_DELAY_SECONDS': 0.0,
        })
        app = create_app(cfg, access_point=access_point, dns=dns, restart=lambda: restarts.append(True))
        client = app.test_client()
        client.post('/api/admin/setup', json={'pass': ADMIN_PASSWORD})

        resp = client.post('/api/admin/factory_reset', headers=basic_auth(ADMIN_PASSWORD), json={})
        data = resp.get_json()
        resp.close()

        assert data['restarting'] is True
        assert data['backup'] and data['backup'].startswith(str(tmp_path / 'backups'))
        app.extensions['kiosk'].restart_timer.join(timeout=2)
        assert restarts


class TestBoot:

    def test_state_survives_restart(self, app_config, client, admin_headers, access_point, dns):
        seed_dock(client, admin_headers)
        client.post('/api/admin/mode', headers=admin_headers, json={'mode': 'game'})

        reborn = create_app(app_config, access_point=access_point, dns=dns).extensions['kiosk']
        assert reborn.modes.mode.value == 'game'
        assert reborn.repository.config.is_configured
        assert reborn.repository.checkpoints[0].secret_code == 'ARRR-07'

    def test_version_change_resets_admin_but_keeps_data(self, app_config, client, admin_headers, access_point, dns):
        seed_dock(client, admin_headers)
        client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'})
        client.post('/api/admin/mode', headers=admin_headers, json={'mode': 'game'})

        upgraded = type('UpgradedConfig', (app_config,), {'KIOSK_VERSION': '2.0.0'})
        kiosk = create_app(upgraded, access_point=access_point, dns=dns).extensions['kiosk']

        assert not kiosk.repository.config.is_configured
        assert kiosk.modes.mode.value == 'setup'
        assert kiosk.repository.config.persisted_schema_version == '2.0.0'
        assert len(kiosk.repository.checkpoints) == 1
        assert len(kiosk.repository.teams) == 1

    def test_sql_backend(self, tmp_path, access_point, dns):
        from config import TestingConfig

        cfg = type('SqlConfig', (TestingConfig,), {'STORAGE_BACKEND': 'sql', 'DATA_DIR': str(tmp_path)})
        app = create_app(cfg, access_point=access_point, dns=dns)
        client = app.test_client()
        client.post('/api/admin/setup', json={'pass': ADMIN_PASSWORD})
        seed_dock(client, basic_auth(ADMIN_PASSWORD))
        team_id = client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'}).get_json()['team_id']
        assert client.post('/api/team/submit_code', json={'team_id': team_id, 'token': 'ARRR-07'}).get_json()['awarded'] == 15


class TestCsrf:

    def test_admin_posts_need_the_page_token(self, tmp_path, access_point, dns):
        from config import TestingConfig

        cfg = type('CsrfConfig', (TestingConfig,), {'WTF_CSRF_ENABLED': True, 'DATA_DIR': str(tmp_path)})
        client = create_app(cfg, access_point=access_point, dns=dns).test_client()

        blocked = client.post('/api/admin/setup', json={'pass': ADMIN_PASSWORD})
        assert blocked.status_code == 400
        assert blocked.get_json() == {'error': 'csrf'}

        page = client.get('/admin').get_data(as_text=True)
        token = re.search(r'name="csrf-token" content="([^"]+)"', page).group(1)
        allowed = client.post('/api/admin/setup', json={'pass': ADMIN_PASSWORD}, headers={'X-CSRFToken': token})
        assert allowed.status_code == 200

        # Player API stays usable from plain fetch calls
        assert client.post('/api/register', json={'team_name': 'Crimson', 'pin': '1234'}).status_code == 200
