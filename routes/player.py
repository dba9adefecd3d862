"""
Player-facing JSON API: team auth, checkpoint lists, redemption, leaderboard.
"""
from flask import Blueprint, jsonify

from services.kiosk import current_kiosk
from routes.common import json_body

player_bp = Blueprint('player', __name__, url_prefix='/api')


@player_bp.route('/register', methods=['POST'])
def register():
    data = json_body()
    team_id, persisted = current_kiosk().engine.register(data.get('team_name'), data.get('pin'))
    return jsonify({'ok': True, 'team_id': team_id, 'persisted': persisted})


@player_bp.route('/login', methods=['POST'])
def login():
    data = json_body()
    team_id = current_kiosk().engine.login(data.get('team_name'), data.get('pin'))
    return jsonify({'ok': True, 'team_id': team_id})


@player_bp.route('/items')
def items():
    """Public checkpoint list; codes are never included."""
    repo = current_kiosk().repository
    with repo.lock:
        payload = [c.to_public_dict() for c in repo.checkpoints]
    return jsonify({'items': payload})


@player_bp.route('/team/items', methods=['POST'])
def team_items():
    data = json_body()
    return jsonify(current_kiosk().engine.team_items(data.get('team_id')))


@player_bp.route('/team/submit_code', methods=['POST'])
def submit_code():
    data = json_body()
    result = current_kiosk().engine.redeem(data.get('team_id'), data.get('token'))
    return jsonify(result.to_dict())


@player_bp.route('/team/scan_qr', methods=['POST'])
def scan_qr():
    """Deprecated alias of ``submit_code`` kept for older clients."""
    return submit_code()


@player_bp.route('/leaderboard')
def leaderboard():
    return jsonify({'teams': current_kiosk().engine.leaderboard()})
