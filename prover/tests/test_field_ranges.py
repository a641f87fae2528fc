import logging

from prover.app.domain.providers import Provider
from prover.app.parsing.field_ranges import (
    find_field_ranges,
    find_last_response_field_ranges,
)
from prover.app.parsing.patterns import (
    FIELD_PATTERN_REGISTRY,
    WISE_FIELD_PATTERNS,
    host_header_regex,
)
from prover.tests.fixtures.transcripts import (
    WISE_DETAIL_BODY,
    WISE_DETAIL_WITH_DATE_BODY,
    http_response,
    json_bytes,
    transaction_list,
)


def test_wise_detail_yields_four_ranges_offset_by_header():
    received = http_response(WISE_DETAIL_BODY)
    header_length = len(received) - len(WISE_DETAIL_BODY)

    ranges = find_field_ranges(received, Provider.WISE)

    assert [r.name for r in ranges] == [
        "paymentId",
        "state",
        "targetAmount",
        "targetCurrency",
    ]

    expected_text = {
        "paymentId": b'"id":12345',
        "state": b'"state":"OUTGOING_PAYMENT_SENT"',
        "targetAmount": b'"targetAmount":10.50',
        "targetCurrency": b'"targetCurrency":"USD"',
    }
    for r in ranges:
        assert r.start == header_length + WISE_DETAIL_BODY.index(
            expected_text[r.name]
        )
        assert received[r.start : r.end] == expected_text[r.name]

    # The combined state+date pattern has no match here.
    assert "timestamp" not in [r.name for r in ranges]


def test_wise_detail_with_date_and_recipient():
    received = http_response(WISE_DETAIL_WITH_DATE_BODY)

    ranges = {r.name: r for r in find_field_ranges(received, Provider.WISE)}

    assert set(ranges) == {
        "paymentId",
        "state",
        "timestamp",
        "targetAmount",
        "targetCurrency",
        "targetRecipientId",
    }
    timestamp = ranges["timestamp"]
    assert received[timestamp.start : timestamp.end] == (
        b'"state":"OUTGOING_PAYMENT_SENT","date":1700000000'
    )
    # Independent patterns may overlap.
    assert ranges["state"].start == timestamp.start


def test_ranges_follow_registry_order():
    received = http_response(WISE_DETAIL_WITH_DATE_BODY)

    names = [r.name for r in find_field_ranges(received, Provider.WISE)]

    registry_order = [p.name for p in WISE_FIELD_PATTERNS]
    assert names == [n for n in registry_order if n in names]


def test_first_match_only():
    body = b'{"id":1,"nested":{"id":2}}'
    received = http_response(body)

    ranges = find_field_ranges(received, Provider.WISE)

    assert len(ranges) == 1
    assert received[ranges[0].start : ranges[0].end] == b'"id":1'


def test_empty_registry_yields_no_ranges():
    received = http_response(WISE_DETAIL_BODY)

    assert FIELD_PATTERN_REGISTRY[Provider.PAYPAL] == ()
    assert find_field_ranges(received, Provider.PAYPAL) == []


def test_buffer_without_delimiter_is_scanned_as_body():
    ranges = find_field_ranges(WISE_DETAIL_BODY, Provider.WISE)

    assert ranges[0].start == WISE_DETAIL_BODY.index(b'"id":12345')


def test_ranges_are_valid_and_non_empty():
    received = http_response(WISE_DETAIL_WITH_DATE_BODY)

    for r in find_field_ranges(received, Provider.WISE):
        assert 0 <= r.start < r.end <= len(received)


def test_resolution_is_deterministic():
    received = http_response(WISE_DETAIL_WITH_DATE_BODY)

    assert find_field_ranges(received, Provider.WISE) == find_field_ranges(
        received, Provider.WISE
    )


def test_located_fields_are_logged(caplog):
    received = http_response(WISE_DETAIL_BODY)

    with caplog.at_level(logging.INFO, logger="prover.app.parsing.field_ranges"):
        find_field_ranges(received, Provider.WISE)

    assert "Found field paymentId" in caplog.text


# ---------------------------------------------------------------------------
# Last-response resolution
# ---------------------------------------------------------------------------


def test_last_response_ranges_skip_the_list_response():
    list_response = http_response(json_bytes(transaction_list([12345, 999])))
    detail_response = http_response(WISE_DETAIL_BODY)
    received = list_response + detail_response

    ranges = find_last_response_field_ranges(received, Provider.WISE)
    payment_id = next(r for r in ranges if r.name == "paymentId")

    assert payment_id.start >= len(list_response)
    assert received[payment_id.start : payment_id.end] == b'"id":12345'


def test_last_response_equals_plain_resolution_for_single_response():
    received = http_response(WISE_DETAIL_BODY)

    assert find_last_response_field_ranges(
        received, Provider.WISE
    ) == find_field_ranges(received, Provider.WISE)


def test_patterns_compile_once():
    field_pattern = WISE_FIELD_PATTERNS[0]

    assert field_pattern.compile() is field_pattern.compile()
    assert host_header_regex() is host_header_regex()
