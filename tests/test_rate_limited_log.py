"""
Tests for the rate-limited logging helper.
"""
import logging
import threading
from unittest.mock import MagicMock, patch

from signvault_sdk._rate_limited_log import rate_limited_log, reset_rate_limits


class TestRateLimitedLog:
    """Tests for the rate-limited logging implementation."""

    def test_repeated_message_is_suppressed(self):
        mock_logger = MagicMock()

        assert rate_limited_log("Bridge stuck", logger_instance=mock_logger)
        assert not rate_limited_log("Bridge stuck", logger_instance=mock_logger)

        mock_logger.warning.assert_called_once_with("Bridge stuck")

    def test_level_and_message_are_separate_keys(self):
        mock_logger = MagicMock()

        rate_limited_log("Bridge stuck", level="warning", logger_instance=mock_logger)
        rate_limited_log("Bridge stuck", level="error", logger_instance=mock_logger)
        rate_limited_log("Other", level="warning", logger_instance=mock_logger)

        mock_logger.error.assert_called_once_with("Bridge stuck")
        assert mock_logger.warning.call_count == 2

    def test_message_repeats_after_interval(self):
        mock_logger = MagicMock()

        with patch("signvault_sdk._rate_limited_log.time.monotonic") as mock_monotonic:
            mock_monotonic.return_value = 1000.0
            rate_limited_log("tick", interval=60, logger_instance=mock_logger)

            mock_monotonic.return_value = 1059.0
            assert not rate_limited_log("tick", interval=60, logger_instance=mock_logger)

            mock_monotonic.return_value = 1061.0
            assert rate_limited_log("tick", interval=60, logger_instance=mock_logger)

        assert mock_logger.warning.call_count == 2

    def test_reset_forgets_messages(self):
        mock_logger = MagicMock()
        rate_limited_log("once", logger_instance=mock_logger)
        reset_rate_limits()
        rate_limited_log("once", logger_instance=mock_logger)
        assert mock_logger.warning.call_count == 2

    def test_unknown_level_falls_back_to_warning(self):
        mock_logger = MagicMock(spec=logging.Logger)
        rate_limited_log("odd", level="loud", logger_instance=mock_logger)
        mock_logger.warning.assert_called_once_with("odd")

    def test_default_logger(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="signvault_sdk._rate_limited_log"):
            rate_limited_log("Debug message", level="debug")
        assert "Debug message" in caplog.text

    def test_concurrent_callers_log_once(self):
        mock_logger = MagicMock()
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            rate_limited_log("contended", logger_instance=mock_logger)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        mock_logger.warning.assert_called_once_with("contended")
