import logging

from app.core.logging import RequestIdFilter, request_id_ctx


def make_record(**extra):
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, "hello", None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_filter_stamps_current_request_id():
    token = request_id_ctx.set("rid-1")
    try:
        record = make_record()
        assert RequestIdFilter().filter(record) is True
        assert record.request_id == "rid-1"
    finally:
        request_id_ctx.reset(token)


def test_filter_keeps_explicit_request_id():
    record = make_record(request_id="explicit")
    RequestIdFilter().filter(record)
    assert record.request_id == "explicit"


def test_filter_outside_request():
    record = make_record()
    RequestIdFilter().filter(record)
    assert record.request_id is None
