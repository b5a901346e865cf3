from clipkeep.database import StateStore
from clipkeep.utils.ip_extractor import extract_ip_addresses, is_valid_ip


def test_out_of_range_octets_are_rejected():
    assert extract_ip_addresses("999.999.999.999 and 10.0.0.1") == ["10.0.0.1"]


def test_addresses_reported_once_in_first_seen_order():
    text = "ping 8.8.8.8 then 1.1.1.1 then 8.8.8.8 again"
    assert extract_ip_addresses(text) == ["8.8.8.8", "1.1.1.1"]


def test_is_valid_ip():
    assert is_valid_ip("0.0.0.0")
    assert is_valid_ip("255.255.255.255")
    assert not is_valid_ip("256.1.1.1")
    assert not is_valid_ip("1.2.3")
    assert not is_valid_ip("1.2.3.4.5")
    assert not is_valid_ip("a.b.c.d")
    assert not is_valid_ip("")


def test_non_ascii_digits_are_not_matched():
    # Arabic-Indic digits are \d in unicode mode
    assert extract_ip_addresses("١.٢.٣.٤") == []


def test_repeat_inside_one_paste_counts_once():
    store = StateStore()
    result = store.ingest("192.168.1.1 is the gateway, 192.168.1.1 again")

    ips = store.get_recent_ips()
    assert [item.ip for item in ips] == ["192.168.1.1"]
    assert ips[0].count == 1
    assert result.new_ips == ["192.168.1.1"]


def test_repeat_across_pastes_increments_count():
    store = StateStore()
    store.ingest("host 10.0.0.1")
    second = store.ingest("other text with 10.0.0.1")

    ips = store.get_recent_ips()
    assert ips[0].count == 2
    assert second.new_ips == []


def test_ip_history_is_bounded_and_newest_first():
    store = StateStore()
    store.update_settings({"ip_limit": 2})
    for ip in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
        store.ingest(f"connect to {ip}")

    assert [item.ip for item in store.get_recent_ips()] == ["10.0.0.3", "10.0.0.2"]
