"""
Flask application exposing kubeconfig issuance and rotation.
"""
from flask import Flask, Response, request, jsonify
import logging
from datetime import datetime, timedelta
from typing import Optional

from .errors import ErrorKind, KubeconfigError, NotFoundError, AlreadyExistsError, ConflictError
from .models.config import Config
from .models.secret import ObjectKey, OwnerReference, CLUSTER_API_VERSION
from .services.kubeconfig_service import KubeconfigService
from .services.logging_service import LoggingService

# Errors caused by corrupt stored data rather than by the request
_CORRUPT_KINDS = frozenset({
    ErrorKind.CERTIFICATE_DECODE_FAILURE,
    ErrorKind.PRIVATE_KEY_DECODE_FAILURE,
    ErrorKind.DESERIALIZATION_FAILURE,
    ErrorKind.PAYLOAD_FIELD_MISSING,
    ErrorKind.MALFORMED_RECORD_ADDRESS,
})


class KubecredApp:
    """Flask application serving the kubeconfig API."""

    def __init__(self, config: Config, kubeconfig_service: KubeconfigService,
                 logging_service: Optional[LoggingService] = None):
        """Initialize the Flask application."""
        self.app = Flask(__name__)
        self.config = config
        self.kubeconfig_service = kubeconfig_service
        self.logging_service = logging_service
        self.logger = logging.getLogger(__name__)

        self._setup_routes()
        self._setup_error_handlers()

    def _error_response(self, error: KubeconfigError):
        """Map a kubeconfig error to an HTTP response."""
        if error.awaiting_dependency:
            status = 503
        elif error.kind in _CORRUPT_KINDS:
            status = 422
        else:
            status = 500
        return jsonify({
            'error': error.kind.value,
            'message': str(error),
            'awaiting_dependency': error.awaiting_dependency
        }), status

    def _setup_routes(self):
        """Set up API routes."""

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint with logging system status."""
            health_status = {
                'status': 'healthy',
                'service': 'kubecred',
                'timestamp': datetime.now().isoformat()
            }

            if self.logging_service:
                health_status['logging'] = self.logging_service.get_health_status()

            return jsonify(health_status)

        @self.app.route('/api/clusters/<namespace>/<name>/kubeconfig', methods=['POST'])
        def issue_kubeconfig(namespace, name):
            """Issue a kubeconfig for a cluster and store it."""
            data = request.get_json(silent=True)
            if not isinstance(data, dict):
                return jsonify({
                    'error': 'Invalid request',
                    'message': 'request body must be a JSON object'
                }), 400

            endpoint = data.get('endpoint')
            if not isinstance(endpoint, str) or not endpoint.strip():
                return jsonify({
                    'error': 'Invalid request',
                    'message': 'endpoint must be a non-empty string'
                }), 400

            proxy_url = data.get('proxy_url') or None
            if proxy_url is not None and not isinstance(proxy_url, str):
                return jsonify({
                    'error': 'Invalid request',
                    'message': 'proxy_url must be a string'
                }), 400

            key = ObjectKey(namespace, name)
            owner = OwnerReference(
                api_version=CLUSTER_API_VERSION,
                kind='Cluster',
                name=name,
                uid=str(data.get('uid', ''))
            )

            try:
                secret = self.kubeconfig_service.issue_for(
                    key, endpoint.strip(), owner, proxy_url
                )
            except AlreadyExistsError as e:
                return jsonify({'error': 'Kubeconfig already exists', 'message': str(e)}), 409
            except KubeconfigError as e:
                return self._error_response(e)

            return jsonify({
                'message': 'Kubeconfig issued',
                'secret': {'namespace': secret.namespace, 'name': secret.name},
                'resource_version': secret.resource_version
            }), 201

        @self.app.route('/api/clusters/<namespace>/<name>/kubeconfig', methods=['GET'])
        def get_kubeconfig(namespace, name):
            """Return the stored kubeconfig YAML."""
            try:
                data = self.kubeconfig_service.get_kubeconfig(ObjectKey(namespace, name))
            except NotFoundError as e:
                return jsonify({'error': 'Not found', 'message': str(e)}), 404
            except KubeconfigError as e:
                return self._error_response(e)

            return Response(data, mimetype='application/yaml')

        @self.app.route('/api/clusters/<namespace>/<name>/kubeconfig/rotation', methods=['GET'])
        def check_rotation(namespace, name):
            """Report whether the client certificate is due for rotation."""
            threshold = None
            raw_threshold = request.args.get('threshold_hours')
            if raw_threshold is not None:
                try:
                    threshold = timedelta(hours=float(raw_threshold))
                except ValueError:
                    return jsonify({
                        'error': 'Invalid request',
                        'message': 'threshold_hours must be a number'
                    }), 400

            try:
                needs_rotation = self.kubeconfig_service.needs_rotation(ObjectKey(namespace, name), threshold)
            except NotFoundError as e:
                return jsonify({'error': 'Not found', 'message': str(e)}), 404
            except KubeconfigError as e:
                return self._error_response(e)

            return jsonify({'needs_rotation': needs_rotation})

        @self.app.route('/api/clusters/<namespace>/<name>/kubeconfig/rotate', methods=['POST'])
        def rotate_kubeconfig(namespace, name):
            """Re-issue the client certificate of a stored kubeconfig."""
            try:
                secret = self.kubeconfig_service.rotate(ObjectKey(namespace, name))
            except NotFoundError as e:
                return jsonify({'error': 'Not found', 'message': str(e)}), 404
            except ConflictError as e:
                return jsonify({'error': 'Conflict', 'message': str(e)}), 409
            except KubeconfigError as e:
                return self._error_response(e)

            return jsonify({
                'message': 'Kubeconfig rotated',
                'resource_version': secret.resource_version
            })

    def _setup_error_handlers(self):
        """Set up error handlers."""

        @self.app.errorhandler(404)
        def not_found(error):
            return jsonify({
                'error': 'Not found',
                'message': 'The requested endpoint does not exist'
            }), 404

        @self.app.errorhandler(405)
        def method_not_allowed(error):
            return jsonify({
                'error': 'Method not allowed',
                'message': 'The requested method is not allowed for this endpoint'
            }), 405

        @self.app.errorhandler(500)
        def internal_error(error):
            self.logger.error(f"Internal server error: {error}")
            return jsonify({
                'error': 'Internal server error',
                'message': 'An unexpected error occurred'
            }), 500

    def run(self, host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
        """Run the Flask development server."""
        host = host or self.config.api_host
        port = port or self.config.api_port
        self.logger.info(f"Starting kubecred API on http://{host}:{port}")
        self.app.run(host=host, port=port, debug=debug)

    def get_app(self) -> Flask:
        """Get the Flask application instance."""
        return self.app
