import logging
from datetime import datetime

from flask import Flask, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from application.api_routes import register_api_routes
from application.errors import ApiError
from application.models import db

logger = logging.getLogger(__name__)


def configure_logging(level):
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    logging.getLogger().setLevel(level)


def create_app(config_object='config.Config'):
    app = Flask(__name__)

    # Load configuration from config.py using from_object
    app.config.from_object(config_object)
    configure_logging(app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(app)
    with app.app_context():
        db.create_all()

    # Register routes from separate files
    register_api_routes(app)

    @app.route('/health')
    def health_check():
        """Health check endpoint for Docker"""
        try:
            db.session.execute(text('SELECT 1'))
            return {'status': 'healthy', 'timestamp': datetime.now().isoformat()}, 200
        except SQLAlchemyError as e:
            logger.error("Health check failed: %s", e)
            return {'status': 'unhealthy', 'database': 'disconnected'}, 503

    # Global Error Handlers
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return jsonify(error.to_dict()), error.status_code

    # Unknown routes and wrong methods answer in JSON as well
    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        logger.debug("HTTP %s for %s %s", error.code, request.method, request.path)
        return jsonify({'success': False, 'message': error.description}), error.code

    # Global 500 error handler (internal server error)
    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.exception("Unhandled error on %s", request.path)
        return jsonify({'success': False, 'message': 'Server error'}), 500

    logger.info("Configuration loaded from %s", config_object)
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5000, debug=app.config.get('DEBUG', False))
