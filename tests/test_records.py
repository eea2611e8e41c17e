import pytest

from slotsearch.records import (
    HASH_SIZE,
    RECORD_SIZE,
    REQUEST_SIZE,
    BlockIndex,
    Metadata,
    Record,
    SearchRequest,
    SearchType,
    hash_function,
    make_key,
    response_pipe_path,
)


def make_record(**overrides):
    values = dict(
        block_time="2024-01-01 00:00:00",
        slot=100,
        tx_idx=3,
        signing_wallet="WalletAAA",
        direction="buy",
        base_coin="COINX",
        base_coin_amount=10,
        quote_coin_amount=20,
        virtual_token_balance_after=30,
        virtual_sol_balance_after=40,
        signature="sigabc",
        provided_gas_fee=1,
        provided_gas_limit=2,
        fee=3,
        consumed_gas=4,
    )
    values.update(overrides)
    return Record(**values)


def test_record_round_trip():
    record = make_record()
    assert Record.unpack(record.pack()) == record


def test_record_has_fixed_size():
    assert RECORD_SIZE == 352
    assert len(make_record().pack()) == RECORD_SIZE
    assert len(make_record(signature="x" * 99).pack()) == RECORD_SIZE


def test_record_round_trip_at_field_limits():
    record = make_record(
        block_time="t" * 19,
        signing_wallet="w" * 49,
        direction="sell",
        base_coin="c" * 99,
        signature="s" * 99,
        base_coin_amount=2**64 - 1,
        slot=2**32 - 1,
    )
    assert Record.unpack(record.pack()) == record


def test_record_rejects_too_long_wallet():
    with pytest.raises(ValueError):
        make_record(signing_wallet="w" * 50).pack()


def test_record_rejects_negative_amount():
    with pytest.raises(ValueError):
        make_record(fee=-1).pack()


def test_record_unpack_rejects_wrong_length():
    with pytest.raises(ValueError):
        Record.unpack(make_record().pack()[:-1])


def test_metadata_round_trip_and_default_size():
    meta = Metadata(record_count=12, block_count=1)
    assert meta.record_size == RECORD_SIZE
    assert Metadata.unpack(meta.pack()) == meta


def test_metadata_unpack_rejects_wrong_length():
    with pytest.raises(ValueError):
        Metadata.unpack(b"\0" * 3)


def test_block_index_round_trip():
    block = BlockIndex(min_slot=5, max_slot=900, offset=RECORD_SIZE * 5000)
    assert BlockIndex.unpack(block.pack()) == block


@pytest.mark.parametrize(
    "request_",
    [
        SearchRequest(client_pid=77, type1=SearchType.SLOT, param1=100),
        SearchRequest(client_pid=77, type1=SearchType.SLOT, param1=100,
                      type2=SearchType.TX_IDX, param2=3),
        SearchRequest(client_pid=8, type1=SearchType.DIRECTION, param1="sell",
                      type2=SearchType.WALLET, param2="w" * 49),
        SearchRequest(client_pid=9, type2=SearchType.ROW, param2=1),
        SearchRequest(client_pid=10),
    ],
)
def test_search_request_round_trip(request_):
    data = request_.pack()
    assert len(data) == REQUEST_SIZE
    assert SearchRequest.unpack(data) == request_


def test_search_request_rejects_long_direction():
    with pytest.raises(ValueError):
        SearchRequest(type1=SearchType.DIRECTION, param1="buyyy").pack()


def test_search_request_rejects_missing_numeric_value():
    with pytest.raises(ValueError):
        SearchRequest(type1=SearchType.SLOT, param1="abc").pack()


def test_search_request_unpack_rejects_unknown_type():
    data = bytearray(SearchRequest(client_pid=1).pack())
    data[4] = 9
    with pytest.raises(ValueError):
        SearchRequest.unpack(bytes(data))


def test_make_key_keeps_both_parts():
    key = make_key(5, 7)
    assert key >> 32 == 5
    assert key & 0xFFFFFFFF == 7
    assert make_key(1, 0xFFFFFFFF) < make_key(2, 0)


def test_make_key_rejects_out_of_range():
    with pytest.raises(ValueError):
        make_key(2**32, 0)


def test_hash_function_stays_in_range():
    assert hash_function(HASH_SIZE) == 0
    assert hash_function(HASH_SIZE + 5) == 5
    assert all(0 <= hash_function(make_key(s, s)) < HASH_SIZE for s in range(0, 10**6, 9973))


def test_response_pipe_path():
    assert response_pipe_path(1234) == "/tmp/search_response_1234"