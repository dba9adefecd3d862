"""
Landing pages and captive-portal probe handling.
"""
from flask import Blueprint, redirect, render_template

from services.kiosk import current_kiosk

main_bp = Blueprint('main', __name__)

# Connectivity checks issued by client operating systems on joining a network
CAPTIVE_PROBE_PATHS = (
    '/generate_204',               # Android / ChromeOS
    '/gen_204',
    '/hotspot-detect.html',        # iOS / macOS
    '/library/test/success.html',
    '/ncsi.txt',                   # Windows
    '/connecttest.txt',
    '/redirect',
    '/success.txt',                # Firefox
    '/canonical.html',
)


def redirect_to_landing():
    """Send the client to the landing route of the mode live right now."""
    response = redirect(current_kiosk().modes.landing, code=302)
    response.headers['Cache-Control'] = 'no-store'
    return response


@main_bp.route('/')
def index():
    return redirect_to_landing()


@main_bp.route('/app')
def player_app():
    """Player landing page."""
    return render_template('app.html')


def register_captive_handlers(app) -> None:
    """Route probes and unmatched paths to the live landing route.

    Called once by ``create_app``; the handlers read the mode per request,
    so mode switches never re-register anything.
    """
    for path in CAPTIVE_PROBE_PATHS:
        app.add_url_rule(
            path,
            endpoint=f'captive_probe{path.replace("/", "_").replace(".", "_")}',
            view_func=redirect_to_landing,
            methods=['GET', 'HEAD', 'POST'],
        )

    @app.errorhandler(404)
    def unmatched_path(error):
        return redirect_to_landing()
