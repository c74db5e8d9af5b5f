import pytest

from discfilter.query_info import (
    DISTANCES_TO_REQUEST_PER_PEER,
    QueryInfo,
    QueryType,
    RequestBody,
    findnode_log2distance,
    log2_distance,
)


def node_with(index: int, value: int) -> bytes:
    raw = bytearray(32)
    raw[index] = value
    return bytes(raw)


ZERO = bytes(32)


def test_log2distance():
    destination = node_with(10, 1)
    expected = [169, 170, 168, 171, 167, 172, 166, 173, 165]
    assert findnode_log2distance(ZERO, destination, len(expected)) == expected


def test_log2distance_lower():
    destination = node_with(31, 8)
    expected = [4, 5, 3, 6, 2, 7, 1, 8, 0, 9, 10]
    assert findnode_log2distance(ZERO, destination, len(expected)) == expected


def test_log2distance_upper():
    destination = node_with(0, 8)
    expected = [252, 253, 251, 254, 250, 255, 249, 256, 248, 247, 246]
    assert findnode_log2distance(ZERO, destination, len(expected)) == expected


def test_too_many_iterations_rejected():
    with pytest.raises(ValueError):
        findnode_log2distance(ZERO, node_with(0, 1), 128)


def test_same_node_has_no_distance():
    assert log2_distance(ZERO, ZERO) is None
    assert findnode_log2distance(ZERO, ZERO, 3) is None


def test_log2_distance_is_symmetric():
    a, b = node_with(10, 1), node_with(5, 3)
    assert log2_distance(a, b) == log2_distance(b, a)


def test_find_node_request():
    query = QueryInfo(QueryType.FIND_NODE, ZERO)
    request = query.rpc_request(node_with(10, 1))
    assert request == RequestBody((169, 170, 168))
    assert request.query_type is QueryType.FIND_NODE
    assert len(request.distances) == DISTANCES_TO_REQUEST_PER_PEER


def test_find_value_request_carries_key():
    target = node_with(31, 8)
    query = QueryInfo(QueryType.FIND_VALUE, target)
    request = query.rpc_request(ZERO)
    assert request == RequestBody((4, 5, 3), key=target)
    assert request.query_type is QueryType.FIND_VALUE


def test_request_to_target_itself_asks_for_enr():
    query = QueryInfo(QueryType.FIND_NODE, ZERO)
    assert query.rpc_request(ZERO).distances == (0,)


def test_key_is_target():
    target = node_with(3, 7)
    assert QueryInfo(QueryType.FIND_VALUE, target).key() == target