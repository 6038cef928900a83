from __future__ import annotations

import allure
import pytest

from kariro.http.address_policy import is_blocked_address, is_blocked_hostname

pytestmark = [
    allure.epic("Outbound Fetcher"),
    allure.feature("Address Policy"),
]


@pytest.mark.parametrize(
    "address",
    [
        "127.0.0.1",
        "127.8.9.10",
        "10.0.0.5",
        "172.16.0.1",
        "172.31.255.254",
        "192.168.1.1",
        "169.254.169.254",
        "0.0.0.0",
        "0.1.2.3",
        "100.64.0.1",
        "224.0.0.1",
        "255.255.255.255",
        "::1",
        "::",
        "fe80::1",
        "fc00::1",
        "fd12:3456::1",
        "ff02::1",
        "::ffff:10.0.0.5",
        "::ffff:127.0.0.1",
        "::ffff:169.254.169.254",
        "2002:a9fe:a9fe::1",
        "2002:7f00:1::1",
        "2002:a00:5::1",
        "not-an-address",
    ],
)
def test_internal_and_malformed_addresses_are_blocked(address: str) -> None:
    assert is_blocked_address(address) is True


@pytest.mark.parametrize(
    "address",
    [
        "93.184.216.34",
        "8.8.8.8",
        "1.1.1.1",
        "2606:4700:4700::1111",
        "::ffff:8.8.8.8",
        "2002:808:808::1",
    ],
)
def test_public_addresses_are_allowed(address: str) -> None:
    assert is_blocked_address(address) is False


@pytest.mark.parametrize(
    ("hostname", "blocked"),
    [
        ("localhost", True),
        ("LOCALHOST", True),
        ("localhost.", True),
        ("api.localhost", True),
        ("0.0.0.0", True),
        ("example.com", False),
        ("localhost.example.com", False),
    ],
)
def test_hostname_blocklist(hostname: str, blocked: bool) -> None:
    assert is_blocked_hostname(hostname) is blocked
