import json
import logging

import pytest

from util_logger import ComponentType, JSONFormatter, LogContext, LoggerFactory, log_exceptions


class Capture(logging.Handler):

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    logger = LoggerFactory.create_logger(ComponentType.SERVICE, "LoggerUnderTest")
    handler = Capture()
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


def test_component_dimensions_added(captured):
    logger, handler = captured

    logger.info("hello", extra={'custom_dimensions': LogContext(request_id="r-1").to_dict()})

    dims = handler.records[0].custom_dimensions
    assert dims == {'request_id': "r-1", 'component_type': "service", 'component_name': "LoggerUnderTest"}


def test_repeated_factory_calls_do_not_stack(captured):
    logger, handler = captured
    LoggerFactory.create_logger(ComponentType.SERVICE, "LoggerUnderTest")
    logger.addHandler(handler)

    logger.warning("once")

    assert len(handler.records) == 1
    assert handler.records[0].custom_dimensions['component_name'] == "LoggerUnderTest"


def test_json_formatter_output(captured):
    logger, handler = captured
    logger.info("formatted")

    payload = json.loads(JSONFormatter().format(handler.records[0]))

    assert payload['message'] == "formatted"
    assert payload['level'] == "INFO"
    assert payload['customDimensions']['component_type'] == "service"


def test_log_exceptions_reraises(captured):
    logger, handler = captured

    @log_exceptions(logger=logger)
    def broken():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        broken()

    assert handler.records[-1].custom_dimensions['exception_type'] == "ValueError"


def test_bearer_tokens_masked(captured):
    logger, handler = captured
    logger.warning("Authorization was Bearer eyJhbGciOi.payload.sig")

    payload = json.loads(JSONFormatter().format(handler.records[0]))

    assert "eyJhbGciOi" not in payload['message']
    assert payload['message'].endswith("Bearer [redacted]")
