"""Tests for ip_ranges (CIDR membership and range list parsing)."""

import pytest

from ip_ranges import is_in_ranges, parse_ipv4_networks


class TestIsInRanges:
    def test_address_inside_block(self):
        assert is_in_ranges("104.16.0.1", ["104.16.0.0/13"]) is True

    def test_address_outside_block(self):
        assert is_in_ranges("8.8.8.8", ["104.16.0.0/13"]) is False

    def test_last_address_of_block(self):
        assert is_in_ranges("104.23.255.255", ["104.16.0.0/13"]) is True
        assert is_in_ranges("104.24.0.0", ["104.16.0.0/13"]) is False

    def test_any_block_matches(self):
        ranges = ["173.245.48.0/20", "172.64.0.0/13"]
        assert is_in_ranges("172.67.1.1", ranges) is True

    def test_empty_ranges(self):
        assert is_in_ranges("104.16.0.1", []) is False

    def test_host_bits_in_block_are_tolerated(self):
        assert is_in_ranges("10.0.0.7", ["10.0.0.5/24"]) is True

    def test_single_host_block(self):
        assert is_in_ranges("203.0.113.5", ["203.0.113.5/32"]) is True
        assert is_in_ranges("203.0.113.6", ["203.0.113.5/32"]) is False

    def test_malformed_blocks_are_skipped(self):
        ranges = ["not-a-cidr", "300.1.1.1/8", "104.16.0.0/40", "2606:4700::/32", "104.16.0.0/13"]
        assert is_in_ranges("104.16.0.1", ranges) is True

    def test_only_malformed_blocks(self):
        assert is_in_ranges("104.16.0.1", ["garbage", ""]) is False

    def test_malformed_address_never_matches(self):
        assert is_in_ranges("not-an-ip", ["0.0.0.0/0"]) is False
        assert is_in_ranges("2606:4700::1", ["0.0.0.0/0"]) is False


class TestParseIpv4Networks:
    def test_parses_cloudflare_style_body(self):
        body = "173.245.48.0/20\n103.21.244.0/22\n"
        assert parse_ipv4_networks(body.splitlines()) == ["173.245.48.0/20", "103.21.244.0/22"]

    def test_blank_lines_and_whitespace_ignored(self):
        lines = ["  104.16.0.0/13 ", "", "   ", "172.64.0.0/13\r"]
        assert parse_ipv4_networks(lines) == ["104.16.0.0/13", "172.64.0.0/13"]

    def test_malformed_line_raises(self):
        with pytest.raises(ValueError):
            parse_ipv4_networks(["104.16.0.0/13", "<html>"])

    def test_ipv6_line_raises(self):
        with pytest.raises(ValueError):
            parse_ipv4_networks(["2400:cb00::/32"])
