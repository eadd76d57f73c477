"""
Tests for logging and operation monitoring.
"""
import json
import logging
import os
import shutil
import sys
import tempfile
import unittest
from datetime import datetime, timedelta

from kubecred.errors import ErrorKind, KubeconfigError
from kubecred.models.config import Config
from kubecred.services.logging_service import (
    LoggingService, JSONFormatter, PerformanceMonitor, ErrorTracker
)


class TestJSONFormatter(unittest.TestCase):
    """Test JSON formatter for structured logging."""

    def setUp(self):
        self.formatter = JSONFormatter()

    def test_format_basic_log_record(self):
        """Test formatting a basic log record."""
        record = logging.getLogger('test').makeRecord(
            name='test.module', level=logging.INFO, fn='test_file.py', lno=42,
            msg='Issued kubeconfig for %s', args=('default/demo',), exc_info=None
        )
        log_data = json.loads(self.formatter.format(record))

        self.assertEqual(log_data['level'], 'INFO')
        self.assertEqual(log_data['logger_name'], 'test.module')
        self.assertEqual(log_data['message'], 'Issued kubeconfig for default/demo')
        self.assertEqual(log_data['line_number'], 42)
        self.assertIsNone(log_data['exception_info'])

    def test_format_with_exception(self):
        """Test formatting a record carrying exception information."""
        try:
            raise ValueError("bad certificate")
        except ValueError:
            record = logging.getLogger('test').makeRecord(
                name='test', level=logging.ERROR, fn='x.py', lno=1,
                msg='failed', args=(), exc_info=sys.exc_info()
            )
        log_data = json.loads(self.formatter.format(record))

        self.assertEqual(log_data['exception_info']['type'], 'ValueError')
        self.assertEqual(log_data['exception_info']['message'], 'bad certificate')

    def test_format_extra_data(self):
        """Test that extra_data is included."""
        record = logging.getLogger('test').makeRecord(
            name='test', level=logging.INFO, fn='x.py', lno=1, msg='m', args=(), exc_info=None,
            extra={'extra_data': {'cluster': 'default/demo'}}
        )
        self.assertEqual(json.loads(self.formatter.format(record))['extra_data'], {'cluster': 'default/demo'})


class TestPerformanceMonitor(unittest.TestCase):
    """Test operation metrics."""

    def setUp(self):
        self.monitor = PerformanceMonitor()

    def test_measure_success_and_failure(self):
        """Test recording successful and failed operations."""
        with self.monitor.measure_operation('rotate_kubeconfig', {'cluster': 'default/demo'}):
            pass

        with self.assertRaises(RuntimeError):
            with self.monitor.measure_operation('rotate_kubeconfig'):
                raise RuntimeError('store down')

        stats = self.monitor.get_operation_stats('rotate_kubeconfig')
        self.assertEqual(stats['total_calls'], 2)
        self.assertEqual(stats['success_count'], 1)
        self.assertEqual(stats['failure_count'], 1)
        self.assertEqual(self.monitor.get_metrics(operation='issue_kubeconfig'), [])
        self.assertEqual(self.monitor.get_operation_stats('issue_kubeconfig'), {})

    def test_history_is_bounded(self):
        """Test that only the most recent metrics are kept."""
        monitor = PerformanceMonitor(max_entries=3)
        for i in range(5):
            with monitor.measure_operation('check_kubeconfig_rotation', {'call': i}):
                pass

        metrics = monitor.get_metrics()
        self.assertEqual(len(metrics), 3)
        self.assertEqual([m.extra_data['call'] for m in metrics], [2, 3, 4])
        self.assertEqual(monitor.get_operation_stats('check_kubeconfig_rotation')['total_calls'], 3)

    def test_get_metrics_since(self):
        """Test filtering metrics by time."""
        with self.monitor.measure_operation('issue_kubeconfig'):
            pass
        self.assertEqual(len(self.monitor.get_metrics(since=datetime.now() - timedelta(minutes=1))), 1)
        self.assertEqual(self.monitor.get_metrics(since=datetime.now() + timedelta(minutes=1)), [])


class TestErrorTracker(unittest.TestCase):
    """Test error tracking."""

    def test_track_by_kind(self):
        """Test that errors are summarized by kind."""
        tracker = ErrorTracker()
        tracker.track_error(KubeconfigError(ErrorKind.DEPENDENT_AUTHORITY_NOT_FOUND, 'no ca'))
        tracker.track_error(KubeconfigError(ErrorKind.DEPENDENT_AUTHORITY_NOT_FOUND, 'no ca'))
        tracker.track_error(ValueError('other'))

        summary = tracker.get_error_summary()
        self.assertEqual(summary['total_errors'], 3)
        self.assertEqual(summary['kinds'], {'dependent_authority_not_found': 2, 'ValueError': 1})
        self.assertEqual(len(tracker.get_errors(kind='dependent_authority_not_found')), 2)

    def test_history_is_bounded(self):
        """Test that the oldest errors are dropped once the history is full."""
        tracker = ErrorTracker(max_entries=2)
        tracker.track_error(ValueError('first'))
        tracker.track_error(KubeconfigError(ErrorKind.SIGNING_FAILURE, 'second'))
        tracker.track_error(KubeconfigError(ErrorKind.SIGNING_FAILURE, 'third'))

        self.assertEqual([e.error_message for e in tracker.get_errors()], ['second', 'third'])
        self.assertEqual(tracker.get_error_summary(), {'total_errors': 2, 'kinds': {'signing_failure': 2}})


class TestLoggingService(unittest.TestCase):
    """Test logging service setup."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root_handlers = logging.getLogger().handlers[:]
        self.root_level = logging.getLogger().level

    def tearDown(self):
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()
        for handler in self.root_handlers:
            root_logger.addHandler(handler)
        root_logger.setLevel(self.root_level)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_setup_writes_json_log_file(self):
        """Test that records reach the JSON log file."""
        log_path = os.path.join(self.temp_dir, 'logs', 'kubecred.log')
        service = LoggingService(Config(log_file_path=log_path, log_level='DEBUG'))

        logging.getLogger('kubecred.test').info('hello')
        for handler in logging.getLogger().handlers:
            handler.flush()

        with open(log_path) as f:
            messages = [json.loads(line)['message'] for line in f if line.strip()]
        self.assertIn('hello', messages)
        self.assertTrue(os.path.exists(os.path.join(self.temp_dir, 'logs', 'kubecred.errors.log')))

        with service.measure_performance('issue_kubeconfig'):
            pass
        self.assertEqual(service.get_performance_stats('issue_kubeconfig')['total_calls'], 1)
        self.assertIn('issue_kubeconfig', service.get_performance_stats())
        self.assertEqual(service.get_health_status()['recent_operations'], 1)


if __name__ == '__main__':
    unittest.main()
