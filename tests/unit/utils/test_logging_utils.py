"""Tests for nirs_modeling.utils.logging_utils."""

import logging

from nirs_modeling.utils.logging_utils import (
    LogTimer,
    get_logger,
    log_metric,
    log_stage_header,
    setup_logging,
)


class TestLogging:
    """Tests for structured log helpers."""

    def test_get_logger_follows_module_name(self):
        assert get_logger('nirs_modeling.training.loop').name == 'nirs_modeling.training.loop'

    def test_stage_header(self, caplog):
        logger = logging.getLogger('nirs_modeling.test')
        with caplog.at_level(logging.INFO, logger='nirs_modeling.test'):
            log_stage_header(logger, 'train_eval', 'pls', width=10)
        assert caplog.messages == ['=' * 10, ' STAGE: train_eval \u2014 pls', '=' * 10]

    def test_metric_line(self, caplog):
        logger = logging.getLogger('nirs_modeling.test')
        with caplog.at_level(logging.INFO, logger='nirs_modeling.test'):
            log_metric(logger, 'RMSE', 0.8132, context='SNV iter-3')
        assert '[METRIC] SNV iter-3 | RMSE = 0.813200' in caplog.text

    def test_timer(self, caplog):
        logger = logging.getLogger('nirs_modeling.test')
        with caplog.at_level(logging.INFO, logger='nirs_modeling.test'):
            with LogTimer(logger, 'pretreatment 5') as timer:
                pass
        assert timer.elapsed >= 0.0
        assert '[TIMER] pretreatment 5' in caplog.text

    def test_setup_writes_file(self, tmp_path):
        setup_logging(level='DEBUG', log_dir=tmp_path, log_to_console=False,
                      capture_warnings=False, force=True)
        logging.getLogger('nirs_modeling.test').info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert 'hello' in (tmp_path / 'nirs_modeling.log').read_text()
        for handler in list(logging.getLogger().handlers):
            handler.close()
            logging.getLogger().removeHandler(handler)
