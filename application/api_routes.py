import logging
from datetime import datetime

from flask import Blueprint, current_app, jsonify, request

from application.auth_utils import authenticate_user, parse_credentials
from application.captcha_utils import verify_request

logger = logging.getLogger(__name__)


def request_payload():
    """JSON body if there is one, otherwise the form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def register_api_routes(app):
    # Blueprint for the JSON API, one per app
    api_bp = Blueprint('api_routes', __name__, url_prefix='/api')

    @api_bp.route('/verify-recaptcha', methods=['POST'])
    def verify_recaptcha():
        # ApiError subclasses raised here are rendered by the app-level handler
        body = verify_request(
            request_payload(),
            current_app.config.get('RECAPTCHA_SECRETS', {}),
            remote_ip=request.remote_addr,
            url=current_app.config['RECAPTCHA_VERIFY_URL'],
            timeout=current_app.config['RECAPTCHA_TIMEOUT'],
        )
        return jsonify(body), 200

    @api_bp.route('/recaptcha-config', methods=['GET'])
    def recaptcha_config():
        # Public values only: site keys and the v2-only switch
        return jsonify({
            'recaptchaV3': current_app.config.get('RECAPTCHA_SITE_KEY_V3'),
            'recaptchaV2': current_app.config.get('RECAPTCHA_SITE_KEY_V2'),
            'v2Only': bool(current_app.config.get('RECAPTCHA_V2_ONLY')),
        })

    @api_bp.route('/login', methods=['POST'])
    def login():
        email, password = parse_credentials(request_payload())

        user = authenticate_user(email, password)
        if not user:
            return jsonify({'message': 'Invalid credentials'}), 401

        logger.info("[AUTH] user logged in user_id=%s", user.UserId)
        return jsonify({'message': 'Login success', 'user': user.to_dict()}), 200

    @api_bp.route('/test', methods=['GET'])
    def test():
        return jsonify({'ok': True, 'time': datetime.now().isoformat(timespec='seconds')})

    app.register_blueprint(api_bp)
