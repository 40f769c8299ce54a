from __future__ import annotations

import json

import pytest

from app.services.frames.validators import (
    is_transaction_payload,
    is_valid_target_url,
    is_valid_untrusted_payload,
)

_TX = {
    "chainId": "eip155:10",
    "method": "eth_sendTransaction",
    "params": {"abi": [], "to": "0x00000000fcCe7f938e7aE6D3c335bD6a1a7c593D", "value": "1"},
}


class TestTargetUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com",
            "http://example.com/frame",
            "https://frames.example.xyz/api/frame?id=1&step=2",
            "https://sub.domain.co.uk/path/to/img.png",
            "https://example.com:8443/frame#top",
        ],
    )
    def test_accepts_absolute_urls(self, url):
        assert is_valid_target_url(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "example.com",
            "ftp://example.com",
            "https://localhost",
            "http://localhost:3000/frame",
            "javascript:alert(1)",
            "https://exa mple.com",
            "https://example.com/<script>",
        ],
    )
    def test_rejects_malformed_urls(self, url):
        assert is_valid_target_url(url) is False

    @pytest.mark.parametrize("value", [None, 42, b"https://example.com", ["https://example.com"]])
    def test_rejects_non_strings(self, value):
        assert is_valid_target_url(value) is False


class TestUntrustedPayload:
    def test_all_fields_present(self):
        payload = {"untrustedData": {"fid": 1, "url": "https://example.com", "buttonIndex": 2}}
        assert is_valid_untrusted_payload(payload) is True

    def test_field_values_are_not_checked(self):
        payload = {"untrustedData": {"fid": None, "url": "", "buttonIndex": "x"}}
        assert is_valid_untrusted_payload(payload) is True

    @pytest.mark.parametrize("missing", ["fid", "url", "buttonIndex"])
    def test_missing_field_is_invalid(self, missing):
        data = {"fid": 1, "url": "https://example.com", "buttonIndex": 1}
        del data[missing]
        assert is_valid_untrusted_payload({"untrustedData": data}) is False

    @pytest.mark.parametrize(
        "payload",
        [{}, {"trustedData": {}}, {"untrustedData": []}, {"untrustedData": "x"}, [], "payload", None],
    )
    def test_wrong_shape_is_invalid(self, payload):
        assert is_valid_untrusted_payload(payload) is False


class TestTransactionPayload:
    def test_mapping(self):
        assert is_transaction_payload(_TX) is True

    def test_json_string(self):
        assert is_transaction_payload(json.dumps(_TX)) is True

    def test_json_bytes(self):
        assert is_transaction_payload(json.dumps(_TX).encode()) is True

    @pytest.mark.parametrize("missing", ["chainId", "method", "params"])
    def test_missing_top_level_field(self, missing):
        tx = {k: v for k, v in _TX.items() if k != missing}
        assert is_transaction_payload(tx) is False

    def test_params_without_recipient(self):
        tx = {**_TX, "params": {"value": "1"}}
        assert is_transaction_payload(tx) is False

    def test_params_not_an_object(self):
        assert is_transaction_payload({**_TX, "params": "0xabc"}) is False

    @pytest.mark.parametrize("value", ["<html></html>", "{not json", "[1, 2]", "null", 7, None])
    def test_never_raises(self, value):
        assert is_transaction_payload(value) is False
