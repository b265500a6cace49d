"""Tests for the command-line entry point."""

import signal
from unittest.mock import PropertyMock, patch

import pytest

from tagwatch.bluetooth.tracker import TrackingLoop
from tagwatch.cli import apply_overrides, build_parser, main
from tagwatch.config import AppConfig
from tagwatch.errors import AdapterUnavailableError


class TestApplyOverrides:
    """Tests for command-line overrides."""

    def test_no_arguments_keeps_config(self):
        args = build_parser().parse_args([])
        assert apply_overrides(AppConfig(), args) == AppConfig()

    def test_overrides(self):
        args = build_parser().parse_args([
            '--company-ids', 'ids.yaml',
            '--trigger', 'interval',
            '--oldest-device', '30',
            '--log-level', 'DEBUG',
            '--log-file', 'tagwatch.log',
            '--no-display',
        ])
        config = apply_overrides(AppConfig(), args)

        assert config.display.company_identifiers == 'ids.yaml'
        assert config.tracking.snapshot_trigger == 'interval'
        assert config.tracking.oldest_device == 30.0
        assert config.logging.level == 'DEBUG'
        assert config.logging.file == 'tagwatch.log'
        assert config.display.enabled is False

    def test_rejects_unknown_trigger(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(['--trigger', 'sometimes'])


class TestMain:
    """Tests for startup failures."""

    def test_missing_config(self, tmp_path, capsys):
        assert main(['-c', str(tmp_path / 'missing.yaml')]) == 2
        assert 'not found' in capsys.readouterr().err

    def test_invalid_config(self, tmp_path, capsys):
        path = tmp_path / 'tagwatch.yaml'
        path.write_text("tracking:\n  oldest_device: 0\n", encoding='utf-8')

        assert main(['-c', str(path)]) == 2
        assert 'tracking.oldest_device' in capsys.readouterr().err

    def test_missing_company_ids(self, tmp_path, capsys):
        argv = [
            '--company-ids', str(tmp_path / 'missing.yaml'),
            '--log-file', str(tmp_path / 'tagwatch.log'),
        ]
        assert main(argv) == 1
        assert 'Company identifiers file not found' in capsys.readouterr().err

    def test_adapter_unavailable(self, tmp_path, capsys):
        argv = ['--log-file', str(tmp_path / 'tagwatch.log'), '--no-display']
        with patch('tagwatch.cli.TrackingLoop.start', side_effect=AdapterUnavailableError("adapter off")):
            assert main(argv) == 1
        assert 'adapter off' in capsys.readouterr().err

    @pytest.mark.parametrize('reason,expected', [('stopped', 0), ('error', 1)])
    def test_exit_code_follows_stop_reason(self, tmp_path, reason, expected):
        argv = ['--log-file', str(tmp_path / 'tagwatch.log'), '--no-display']
        with patch.object(TrackingLoop, 'start'), \
                patch.object(TrackingLoop, 'wait', return_value=True), \
                patch.object(TrackingLoop, 'stop_reason', new_callable=PropertyMock, return_value=reason):
            assert main(argv) == expected

    def test_signal_handlers_restored(self, tmp_path):
        before = signal.getsignal(signal.SIGINT)
        argv = ['--log-file', str(tmp_path / 'tagwatch.log'), '--no-display']
        with patch.object(TrackingLoop, 'start'), \
                patch.object(TrackingLoop, 'wait', return_value=True):
            main(argv)
        assert signal.getsignal(signal.SIGINT) is before
