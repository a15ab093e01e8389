from depot.services.sequence_service import (
    CLIENT_ORDER_PREFIX,
    WAREHOUSE_ORDER_PREFIX,
    format_order_number,
    next_order_number,
)


def test_format_order_number():
    assert format_order_number("ORD", 2026, 7) == "ORD-2026-0007"
    assert format_order_number("CLT", 2026, 12345) == "CLT-2026-12345"


def test_prefixes_and_years_count_independently(db_session):
    assert next_order_number(WAREHOUSE_ORDER_PREFIX, year=2026) == "ORD-2026-0001"
    assert next_order_number(WAREHOUSE_ORDER_PREFIX, year=2026) == "ORD-2026-0002"
    assert next_order_number(CLIENT_ORDER_PREFIX, year=2026) == "CLT-2026-0001"
    assert next_order_number(WAREHOUSE_ORDER_PREFIX, year=2027) == "ORD-2027-0001"
    db_session.commit()


def test_rolled_back_number_is_reissued(db_session):
    next_order_number(WAREHOUSE_ORDER_PREFIX, year=2026)
    db_session.commit()

    assert next_order_number(WAREHOUSE_ORDER_PREFIX, year=2026) == "ORD-2026-0002"
    db_session.rollback()

    assert next_order_number(WAREHOUSE_ORDER_PREFIX, year=2026) == "ORD-2026-0002"
    db_session.commit()
