from pagination import pagination_payload, parse_pagination


def test_parse_pagination_defaults():
    assert parse_pagination({}) == (1, 10)


def test_parse_pagination_clamps_bad_values():
    assert parse_pagination({"page": "0", "pageSize": "-3"}) == (1, 10)
    assert parse_pagination({"page": "abc", "pageSize": "500"}, max_page_size=100) == (1, 100)


def test_pagination_payload_flags():
    assert pagination_payload(1, 10, 0) == {
        "currentPage": 1,
        "pageSize": 10,
        "totalItems": 0,
        "totalPages": 0,
        "hasNextPage": False,
        "hasPreviousPage": False,
    }
    payload = pagination_payload(2, 10, 25)
    assert payload["totalPages"] == 3
    assert payload["hasNextPage"] is True
    assert payload["hasPreviousPage"] is True
