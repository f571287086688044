"""Tests for logging setup."""

import json
import logging

import pytest
import structlog
from structlog.stdlib import ProcessorFormatter

from move_instance.core.logging_config import get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    structlog.reset_defaults()


def test_events_written_to_log_file(tmp_path):
    setup_logging(log_dir=tmp_path, log_level="DEBUG")

    get_logger().info("Running cleanup", host="kvm02.lan", command="umount /mnt/tmp.a")

    lines = (tmp_path / "move_instance.log").read_text().splitlines()
    events = [json.loads(line) for line in lines]
    cleanup = [event for event in events if event["event"] == "Running cleanup"]
    assert cleanup[0]["host"] == "kvm02.lan"
    assert cleanup[0]["level"] == "info"
    assert any(event["event"] == "Logging system initialized" for event in events)


def test_level_filters_file(tmp_path):
    setup_logging(log_dir=tmp_path, log_level="WARNING")

    get_logger().info("quiet")
    get_logger().warning("loud")

    text = (tmp_path / "move_instance.log").read_text()
    assert "loud" in text
    assert "quiet" not in text


def test_console_only(tmp_path):
    setup_logging(log_dir=None, log_level="INFO")

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0].formatter, ProcessorFormatter)
    assert not list(tmp_path.iterdir())


def test_setup_replaces_handlers(tmp_path):
    setup_logging(log_dir=tmp_path, log_level="INFO")
    setup_logging(log_dir=tmp_path, log_level="INFO")

    assert len(logging.getLogger().handlers) == 2
