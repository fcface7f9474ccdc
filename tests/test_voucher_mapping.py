"""Tests for mapping raw UniFi payloads to canonical models"""

from vorio_agent.adapters.unifi import map_security_mode, map_voucher, map_wlan
from vorio_agent.models import VoucherStatus

NOW = 1_700_000_000


class TestVoucherStatus:
    def test_single_use_redeemed_is_used(self):
        voucher = map_voucher({"_id": "a", "code": "11111", "quota": 1, "used": 1}, now=NOW)
        assert voucher.status == VoucherStatus.USED.value

    def test_single_use_unredeemed_is_valid_one(self):
        voucher = map_voucher({"_id": "a", "code": "11111", "quota": 1, "used": 0}, now=NOW)
        assert voucher.status == VoucherStatus.VALID_ONE.value

    def test_multi_use_is_valid_multi(self):
        voucher = map_voucher({"_id": "a", "code": "11111", "quota": 5, "used": 3}, now=NOW)
        assert voucher.status == VoucherStatus.VALID_MULTI.value

    def test_unlimited_quota_is_valid_multi(self):
        voucher = map_voucher({"_id": "a", "code": "11111", "quota": 0, "used": 12}, now=NOW)
        assert voucher.quota == 0
        assert voucher.status == VoucherStatus.VALID_MULTI.value
        assert not voucher.is_exhausted

    def test_expired_flag_wins(self):
        raw = {"_id": "a", "code": "11111", "quota": 1, "used": 0, "status": "VALID_ONE", "expired": True}
        assert map_voucher(raw, now=NOW).status == VoucherStatus.EXPIRED.value

    def test_explicit_status_is_kept(self):
        raw = {"_id": "a", "code": "11111", "quota": 1, "used": 1, "status": "VALID_MULTI"}
        assert map_voucher(raw, now=NOW).status == "VALID_MULTI"


class TestVoucherFields:
    def test_integration_fields(self):
        raw = {
            "id": "v-1",
            "code": "12345-67890",
            "createdAt": "2024-01-01T00:00:00Z",
            "activatedAt": "2024-01-01T01:00:00Z",
            "timeLimitMinutes": 1440,
            "authorizedGuestLimit": 1,
            "authorizedGuestCount": 0,
            "txRateLimitKbps": 2048,
            "rxRateLimitKbps": 8192,
            "name": "Lobby",
        }
        voucher = map_voucher(raw, now=NOW)

        assert voucher.id == "v-1"
        assert voucher.code == "12345-67890"
        assert voucher.create_time == 1704067200
        assert voucher.start_time == 1704070800
        assert voucher.duration == 1440
        assert voucher.qos_rate_max_up == 2048
        assert voucher.qos_rate_max_down == 8192
        assert voucher.note == "Lobby"

    def test_legacy_fields(self):
        raw = {
            "_id": "legacy-1",
            "code": "9876543210",
            "create_time": 1700000100,
            "start_time": 1700000200,
            "duration": 60,
            "quota": 2,
            "used": 1,
            "note": "front desk",
        }
        voucher = map_voucher(raw, now=NOW)

        assert voucher.id == "legacy-1"
        assert voucher.create_time == 1700000100
        assert voucher.start_time == 1700000200
        assert voucher.duration == 60
        assert voucher.quota == 2
        assert voucher.used == 1
        assert voucher.note == "front desk"

    def test_integration_field_preferred_over_legacy(self):
        raw = {"id": "new", "_id": "old", "code": "1", "authorizedGuestLimit": 3, "quota": 1, "name": "A", "note": "B"}
        voucher = map_voucher(raw, now=NOW)
        assert voucher.id == "new"
        assert voucher.quota == 3
        assert voucher.note == "A"

    def test_defaults(self):
        voucher = map_voucher({"code": "55555"}, now=NOW)
        assert voucher.id == "55555"
        assert voucher.create_time == NOW
        assert voucher.quota == 1
        assert voucher.used == 0
        assert voucher.duration is None
        assert voucher.start_time is None

    def test_deterministic(self):
        raw = {"_id": "a", "code": "1", "quota": 1, "used": 0}
        assert map_voucher(raw, now=NOW) == map_voucher(dict(raw), now=NOW)

    def test_wire_format_is_camel_case(self):
        wire = map_voucher({"_id": "a", "code": "1", "qos_rate_max_up": 100}, now=NOW).to_wire()
        assert wire["createTime"] == NOW
        assert wire["qosRateMaxUp"] == 100
        assert "startTime" not in wire
        assert "create_time" not in wire


class TestWlanMapping:
    def test_integration_wlan(self):
        wlan = map_wlan({"ssid": "Guest WiFi", "name": "guest", "isEnabled": True, "isGuest": True, "securityMode": "WPA2_PERSONAL"})
        assert wlan.ssid == "Guest WiFi"
        assert wlan.enabled is True
        assert wlan.is_guest is True
        assert wlan.security == "wpa2"

    def test_legacy_wlan_falls_back_to_name(self):
        wlan = map_wlan({"name": "Office", "enabled": False, "security": "wpapsk"})
        assert wlan.ssid == "Office"
        assert wlan.enabled is False
        assert wlan.is_guest is False
        assert wlan.security == "wpa"

    def test_missing_ssid(self):
        assert map_wlan({}).ssid == "Unknown"

    def test_security_modes(self):
        assert map_security_mode({}) == "open"
        assert map_security_mode({"security": "open"}) == "open"
        assert map_security_mode({"security": "WPA3"}) == "wpa3"
        assert map_security_mode({"security": "wep"}) == "wep"
        assert map_security_mode({"security": "enterprise"}) == "enterprise"
