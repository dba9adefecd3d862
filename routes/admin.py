"""
Organizer routes: admin page and ``/api/admin/*``.
"""
from flask import Blueprint, jsonify, render_template

from models import Mode
from services.audit import log_action
from services.errors import ValidationError
from services.kiosk import current_kiosk
from routes.common import admin_required, json_body

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/admin')
@admin_required
def admin_page():
    return render_template('admin.html', configured=current_kiosk().repository.config.is_configured)


@admin_bp.route('/api/admin/status')
@admin_required
def status():
    return jsonify(current_kiosk().status())


@admin_bp.route('/api/admin/setup', methods=['POST'])
def setup():
    """First-time admin password; rejected for good once one is set."""
    kiosk = current_kiosk()
    if kiosk.repository.config.is_configured:
        raise ValidationError('already_configured')
    data = json_body()
    persisted = kiosk.bootstrap_admin(data.get('pass'))
    log_action('admin_bootstrap', 'config')
    return jsonify({'ok': True, 'persisted': persisted})


@admin_bp.route('/api/admin/game_ssid', methods=['POST'])
@admin_required
def game_ssid():
    data = json_body()
    ssid, persisted = current_kiosk().set_game_ssid(data.get('ssid'))
    log_action('game_ssid_updated', 'config', details={'ssid': ssid})
    return jsonify({'ok': True, 'game_ssid': ssid, 'persisted': persisted})


@admin_bp.route('/api/admin/checkpoints', methods=['GET'])
@admin_required
def list_checkpoints():
    repo = current_kiosk().repository
    with repo.lock:
        items = [c.to_document() for c in repo.checkpoints]
    return jsonify({'items': items})


@admin_bp.route('/api/admin/checkpoints', methods=['POST'])
@admin_required
def replace_checkpoints():
    """Bulk replace. Body is an array of checkpoints or ``{"items": [...]}``."""
    data = json_body(expected=(list, dict))
    if isinstance(data, dict):
        data = data.get('items')
        if not isinstance(data, list):
            raise ValidationError('bad_json')
    result = current_kiosk().replace_checkpoints(data)
    log_action('checkpoints_replaced', 'checkpoint',
               details={'count': result['count'], 'dropped': result['dropped']})
    return jsonify(result)


@admin_bp.route('/api/admin/mode', methods=['POST'])
@admin_required
def switch_mode():
    data = json_body()
    target = Mode.parse(data.get('mode'))
    if target is None:
        raise ValidationError('bad_mode')
    result = current_kiosk().modes.transition(target)
    if result.changed:
        log_action('mode_switched', 'config', details={'mode': result.mode.value})
    return jsonify({'ok': True, 'mode': result.mode.value, 'changed': result.changed,
                    'persisted': result.persisted})


@admin_bp.route('/api/admin/factory_reset', methods=['POST'])
@admin_required
def factory_reset():
    data = json_body()
    wipe_all = data.get('wipe_all', False) is True
    kiosk = current_kiosk()
    log_action('factory_reset', 'config', details={'wipe_all': wipe_all})
    result = kiosk.factory_reset(wipe_all)
    result['restarting'] = bool(kiosk.app_config.get('RESTART_ON_FACTORY_RESET'))
    response = jsonify(result)
    response.call_on_close(kiosk.schedule_restart)
    return response
