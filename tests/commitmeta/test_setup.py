"""Tests for configuration loading and logging setup"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from commitmeta.setup import load_config, setup_logging

DUMMY_CONFIG = Path(__file__).parents[2] / 'config' / 'commitmeta_config_dummy.yaml'


@pytest.fixture
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    yield root_logger
    root_logger.handlers = handlers
    root_logger.setLevel(level)


class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(RuntimeError, match='not found'):
            load_config(str(tmp_path / 'missing.yaml'))

    def test_requires_repositories(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text('loglevel: debug\n', encoding='UTF-8')
        with pytest.raises(RuntimeError, match='repositories'):
            load_config(str(path))

    def test_empty_repositories(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text('repositories:\n', encoding='UTF-8')
        assert load_config(str(path))['repositories'] == {}

    def test_dummy_config_loads(self):
        config = load_config(str(DUMMY_CONFIG))

        assert config['cicd']['maximum_statuses'] == 1000
        widgets = config['repositories']['/home/user/src/widgets']
        assert widgets['cicd'][0]['provider'] == 'github'


class TestSetupLogging:
    def test_console_only(self, restore_root_logger):
        root_logger = setup_logging(level=logging.DEBUG)

        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1

    def test_rotating_logfile(self, restore_root_logger, tmp_path):
        logfile = tmp_path / 'logs' / 'commitmeta.log'
        root_logger = setup_logging(logfile=str(logfile), max_logfile_size_kb=10)

        file_handlers = [h for h in root_logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 10 * 1024
        logging.getLogger('commitmeta.test').info('hello')
        file_handlers[0].close()
        assert 'INFO [commitmeta.test] hello' in logfile.read_text(encoding='UTF-8')
