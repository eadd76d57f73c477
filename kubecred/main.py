"""
Command line entry point for kubecred.
Wires configuration, logging, storage and the kubeconfig service together.
"""

import os
import sys
import logging
from typing import Optional

from .errors import KubeconfigError, StoreError
from .models.config import Config
from .models.database import DatabaseManager
from .models.secret import ObjectKey, ClusterRef
from .services.config_service import ConfigService
from .services.logging_service import LoggingService
from .services.secret_service import SecretService
from .services.kubeconfig_service import KubeconfigService


class KubecredApplication:
    """Builds the services used by the CLI and the API server."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the application.

        Args:
            config_path: Path to configuration file (optional)
        """
        self.config_path = config_path or self._get_default_config_path()
        self.logger = logging.getLogger(__name__)
        self.config: Optional[Config] = None
        self.logging_service: Optional[LoggingService] = None
        self.db_manager: Optional[DatabaseManager] = None
        self.secret_service: Optional[SecretService] = None
        self.kubeconfig_service: Optional[KubeconfigService] = None

    def _get_default_config_path(self) -> str:
        """Get the default configuration file path."""
        possible_paths = [
            "config/kubecred.properties",
            "kubecred.properties",
            os.path.expanduser("~/.kubecred/config.properties"),
            "/etc/kubecred/config.properties"
        ]

        for path in possible_paths:
            if os.path.exists(path):
                return path

        return possible_paths[0]

    def initialize(self) -> bool:
        """
        Load configuration and create services.

        Returns:
            True if initialization succeeded
        """
        try:
            if os.path.exists(self.config_path):
                self.config = ConfigService().load_config(self.config_path)
            else:
                self.config = Config()

            self.logging_service = LoggingService(self.config)
            if not os.path.exists(self.config_path):
                self.logger.warning(f"Configuration file not found at {self.config_path}, using defaults")

            db_dir = os.path.dirname(self.config.database_path)
            if db_dir and "://" not in self.config.database_path:
                os.makedirs(db_dir, exist_ok=True)

            self.db_manager = DatabaseManager(self.config.database_url)
            self.db_manager.create_tables()

            self.secret_service = SecretService(self.db_manager)
            self.kubeconfig_service = KubeconfigService(
                self.secret_service, self.config, self.logging_service
            )
            return True

        except (OSError, ValueError) as e:
            self.logger.error(f"Failed to initialize application: {e}")
            return False

    def create_api(self):
        """Create the Flask API bound to this application's services."""
        from .app import KubecredApp
        return KubecredApp(self.config, self.kubeconfig_service, self.logging_service)


def build_parser():
    """Build the argument parser."""
    import argparse

    parser = argparse.ArgumentParser(prog='kubecred', description='Cluster-admin kubeconfig issuance and rotation')
    parser.add_argument('--config', '-c', help='Configuration file path')
    subparsers = parser.add_subparsers(dest='command', required=True)

    issue = subparsers.add_parser('issue', help='Issue a kubeconfig and store it')
    issue.add_argument('--namespace', '-n', default='default')
    issue.add_argument('--cluster', required=True, help='Cluster name')
    issue.add_argument('--uid', default='', help='UID of the owning cluster object')
    issue.add_argument('--host', required=True, help='Control plane host')
    issue.add_argument('--port', type=int, default=6443, help='Control plane port (default: 6443)')
    issue.add_argument('--proxy-url', help='Proxy URL for reaching the API server')

    for command, help_text in (('show', 'Print the stored kubeconfig'),
                               ('check', 'Check whether the client certificate needs rotation'),
                               ('rotate', 'Re-issue the client certificate in place')):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument('--namespace', '-n', default='default')
        sub.add_argument('--cluster', required=True, help='Cluster name')
        if command == 'check':
            sub.add_argument('--threshold-hours', type=float,
                             help='Rotation threshold (uses config if not specified)')

    serve = subparsers.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', help='Host to bind to (uses config if not specified)')
    serve.add_argument('--port', type=int, help='Port to bind to (uses config if not specified)')
    serve.add_argument('--debug', action='store_true', help='Enable debug mode')

    init_config = subparsers.add_parser('init-config', help='Write a default configuration file')
    init_config.add_argument('path', help='Where to write the configuration file')

    return parser


def main(argv=None) -> int:
    """Main entry point for the command line."""
    from datetime import timedelta

    args = build_parser().parse_args(argv)

    if args.command == 'init-config':
        ConfigService().create_default_config_file(args.path)
        print(f"Wrote default configuration to {args.path}")
        return 0

    app = KubecredApplication(config_path=args.config)
    if not app.initialize():
        print("Failed to initialize application", file=sys.stderr)
        return 1

    if args.command == 'serve':
        app.create_api().run(host=args.host, port=args.port, debug=args.debug)
        return 0

    service = app.kubeconfig_service
    key = ObjectKey(args.namespace, args.cluster)

    try:
        if args.command == 'issue':
            cluster = ClusterRef(
                name=args.cluster, namespace=args.namespace, uid=args.uid,
                host=args.host, port=args.port
            )
            secret = service.issue(cluster, args.proxy_url)
            print(f"Created secret {secret.namespace}/{secret.name}")
        elif args.command == 'show':
            sys.stdout.write(service.get_kubeconfig(key).decode('utf-8'))
        elif args.command == 'check':
            threshold = timedelta(hours=args.threshold_hours) if args.threshold_hours is not None else None
            needs_rotation = service.needs_rotation(key, threshold)
            print("rotation needed" if needs_rotation else "up to date")
            return 2 if needs_rotation else 0
        elif args.command == 'rotate':
            secret = service.rotate(key)
            print(f"Rotated secret {secret.namespace}/{secret.name} (version {secret.resource_version})")
    except KubeconfigError as e:
        print(f"Error ({e.kind.value}): {e}", file=sys.stderr)
        return 3 if e.awaiting_dependency else 1
    except StoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
