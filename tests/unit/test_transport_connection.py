"""Test BLE connection setup with bleak replaced by fakes."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from bleak.exc import BleakError

from spheromini.exceptions import (
    BLEConnectionError,
    CharacteristicNotFoundError,
    TransportWriteError,
)
from spheromini.protocol.commands import (
    ANTI_DOS_CHARACTERISTIC_UUID,
    ANTI_SLEEP_TOKEN,
    API_V2_CHARACTERISTIC_UUID,
    DFU2_CHARACTERISTIC_UUID,
    DFU_CHARACTERISTIC_UUID,
)
from spheromini.transport import connection as connection_module
from spheromini.transport.connection import BLEConnection, matches_target

ALL_UUIDS = (
    API_V2_CHARACTERISTIC_UUID,
    ANTI_DOS_CHARACTERISTIC_UUID,
    DFU_CHARACTERISTIC_UUID,
    DFU2_CHARACTERISTIC_UUID,
)

SPHERO = SimpleNamespace(address="AA:BB:CC:DD:EE:FF", name="SM-1A2B")
OTHER = SimpleNamespace(address="11:22:33:44:55:66", name="Headphones")


class _FakeServices:
    def __init__(self, uuids):
        self._chars = {uuid: SimpleNamespace(uuid=uuid) for uuid in uuids}

    def get_characteristic(self, uuid):
        return self._chars.get(uuid)


class _FakeClient:
    def __init__(self, uuids=ALL_UUIDS, fail_writes: bool = False):
        self.services = _FakeServices(uuids)
        self.is_connected = True
        self.fail_writes = fail_writes
        self.writes: list[tuple[str, bytes, bool]] = []
        self.notify: dict[str, object] = {}
        self.cache_cleared = False

    async def write_gatt_char(self, char, data, response=False):
        if self.fail_writes and char.uuid == API_V2_CHARACTERISTIC_UUID:
            raise BleakError("write failed")
        self.writes.append((char.uuid, bytes(data), response))

    async def start_notify(self, char, callback):
        self.notify[char.uuid] = callback

    async def clear_cache(self):
        self.cache_cleared = True
        return True

    async def disconnect(self):
        self.is_connected = False
        return True


def _install_scanner(monkeypatch, devices):
    calls = []

    class _FakeScanner:
        @classmethod
        async def find_device_by_filter(cls, filterfunc, timeout=10.0, **kwargs):
            calls.append(timeout)
            for device in devices:
                if filterfunc(device, SimpleNamespace(local_name=None)):
                    return device
            return None

    monkeypatch.setattr(connection_module, "BleakScanner", _FakeScanner)
    return calls


def _install_clients(monkeypatch, clients):
    calls = []
    pending = list(clients)

    async def fake_establish_connection(**kwargs):
        calls.append(kwargs)
        result = pending.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(connection_module, "establish_connection", fake_establish_connection)
    return calls


class TestMatchesTarget:
    """Test scan result matching."""

    def test_matches_address_case_insensitive(self):
        assert matches_target("aa:bb:cc:dd:ee:ff", SPHERO)

    def test_matches_name(self):
        assert matches_target("SM-1A2B", SPHERO)

    def test_matches_advertised_local_name(self):
        unnamed = SimpleNamespace(address="AA:BB:CC:DD:EE:00", name=None)
        assert matches_target("SM-9999", unnamed, SimpleNamespace(local_name="SM-9999"))

    def test_no_match(self):
        assert not matches_target("SM-1A2B", OTHER)


@pytest.mark.asyncio
async def test_connect_by_name_sets_up_characteristics(monkeypatch) -> None:
    scans = _install_scanner(monkeypatch, [OTHER, SPHERO])
    client = _FakeClient()
    establish_calls = _install_clients(monkeypatch, [client])
    received: list[bytes] = []

    conn = BLEConnection("SM-1A2B", timeout=5.0)
    await conn.connect(received.append)

    assert scans == [5.0]
    assert conn.ble_device is SPHERO
    assert conn.is_connected
    assert establish_calls[0]["device"] is SPHERO
    assert establish_calls[0]["max_attempts"] == 5

    # Keep-awake token goes out before anything else
    assert client.writes[0] == (ANTI_DOS_CHARACTERISTIC_UUID, ANTI_SLEEP_TOKEN, False)
    assert set(client.notify) == set(ALL_UUIDS)

    client.notify[API_V2_CHARACTERISTIC_UUID](None, bytearray(b"\x8d\x01"))
    client.notify[DFU_CHARACTERISTIC_UUID](None, bytearray(b"\x42"))
    client.notify[ANTI_DOS_CHARACTERISTIC_UUID](None, bytearray(b"\x43"))
    assert received == [b"\x8d\x01"]


@pytest.mark.asyncio
async def test_connect_not_found_raises(monkeypatch) -> None:
    _install_scanner(monkeypatch, [OTHER])
    establish_calls = _install_clients(monkeypatch, [])

    conn = BLEConnection("AA:BB:CC:DD:EE:FF", timeout=10.0)

    with pytest.raises(BLEConnectionError, match="not found"):
        await conn.connect(lambda data: None)

    assert establish_calls == []
    assert not conn.is_connected


@pytest.mark.asyncio
async def test_known_ble_device_skips_scan(monkeypatch) -> None:
    scans = _install_scanner(monkeypatch, [])
    _install_clients(monkeypatch, [_FakeClient()])

    conn = BLEConnection("AA:BB:CC:DD:EE:FF", ble_device=SPHERO)
    await conn.connect(lambda data: None)

    assert scans == []
    assert conn.is_connected


@pytest.mark.asyncio
async def test_partial_discovery_is_retried(monkeypatch) -> None:
    _install_scanner(monkeypatch, [SPHERO])
    partial = _FakeClient(uuids=ALL_UUIDS[:3])
    complete = _FakeClient()
    establish_calls = _install_clients(monkeypatch, [partial, complete])

    conn = BLEConnection("SM-1A2B")
    await conn.connect(lambda data: None)

    assert len(establish_calls) == 2
    assert partial.cache_cleared
    assert not partial.is_connected
    assert complete.writes[0][0] == ANTI_DOS_CHARACTERISTIC_UUID


@pytest.mark.asyncio
async def test_missing_characteristic_exhausts_attempts(monkeypatch) -> None:
    _install_scanner(monkeypatch, [SPHERO])
    clients = [_FakeClient(uuids=ALL_UUIDS[1:]) for _ in range(3)]
    establish_calls = _install_clients(monkeypatch, clients)

    conn = BLEConnection("SM-1A2B", discovery_attempts=3)

    with pytest.raises(CharacteristicNotFoundError) as exc_info:
        await conn.connect(lambda data: None)

    assert exc_info.value.uuid == API_V2_CHARACTERISTIC_UUID
    assert isinstance(exc_info.value, BLEConnectionError)
    assert len(establish_calls) == 3
    assert not conn.is_connected


@pytest.mark.asyncio
async def test_bleak_error_is_wrapped(monkeypatch) -> None:
    _install_scanner(monkeypatch, [SPHERO])
    _install_clients(monkeypatch, [BleakError("le-connection-abort-by-local")])

    conn = BLEConnection("SM-1A2B")

    with pytest.raises(BLEConnectionError, match="Failed to connect"):
        await conn.connect(lambda data: None)


@pytest.mark.asyncio
async def test_write_command_requires_connection() -> None:
    conn = BLEConnection("SM-1A2B")

    with pytest.raises(BLEConnectionError, match="Not connected"):
        await conn.write_command(b"\x8d")


@pytest.mark.asyncio
async def test_write_command_targets_api_characteristic(monkeypatch) -> None:
    _install_scanner(monkeypatch, [SPHERO])
    client = _FakeClient()
    _install_clients(monkeypatch, [client])

    conn = BLEConnection("SM-1A2B")
    await conn.connect(lambda data: None)
    await conn.write_command(b"\x8d\x0a\x13\x0d\x01\xd4\xd8")

    assert client.writes[-1] == (API_V2_CHARACTERISTIC_UUID, b"\x8d\x0a\x13\x0d\x01\xd4\xd8", False)


@pytest.mark.asyncio
async def test_write_failure_raises_transport_error(monkeypatch) -> None:
    _install_scanner(monkeypatch, [SPHERO])
    _install_clients(monkeypatch, [_FakeClient(fail_writes=True)])

    conn = BLEConnection("SM-1A2B")
    await conn.connect(lambda data: None)

    with pytest.raises(TransportWriteError, match="write failed"):
        await conn.write_command(b"\x8d")


@pytest.mark.asyncio
async def test_disconnect_closes_client(monkeypatch) -> None:
    _install_scanner(monkeypatch, [SPHERO])
    client = _FakeClient()
    _install_clients(monkeypatch, [client])

    async with BLEConnection("SM-1A2B") as conn:
        await conn.connect(lambda data: None)
        assert conn.is_connected

    assert not client.is_connected
    assert not conn.is_connected


def test_unexpected_disconnect_notifies_owner() -> None:
    dropped = []
    conn = BLEConnection("SM-1A2B", disconnected_callback=lambda: dropped.append(True))

    conn._on_disconnect(_FakeClient())

    assert dropped == [True]
    assert not conn.is_connected


def test_attempt_counts_must_be_positive() -> None:
    with pytest.raises(ValueError, match="at least 1"):
        BLEConnection("SM-1A2B", max_attempts=0)


@pytest.mark.asyncio
async def test_reconnect_after_failed_disconnect_reports_drops(monkeypatch) -> None:
    _install_scanner(monkeypatch, [SPHERO])
    first = _FakeClient()
    second = _FakeClient()
    _install_clients(monkeypatch, [first, second])
    dropped = []

    async def broken_disconnect():
        raise BleakError("disconnect failed")

    first.disconnect = broken_disconnect

    conn = BLEConnection("SM-1A2B", disconnected_callback=lambda: dropped.append(True))
    await conn.connect(lambda data: None)
    await conn.disconnect()
    await conn.connect(lambda data: None)

    conn._on_disconnect(second)

    assert dropped == [True]
    assert not conn.is_connected


@pytest.mark.asyncio
async def test_drop_after_partial_discovery_is_reported(monkeypatch) -> None:
    _install_scanner(monkeypatch, [SPHERO])
    complete = _FakeClient()
    _install_clients(monkeypatch, [_FakeClient(uuids=ALL_UUIDS[:3]), complete])
    dropped = []

    conn = BLEConnection("SM-1A2B", disconnected_callback=lambda: dropped.append(True))
    await conn.connect(lambda data: None)

    conn._on_disconnect(complete)

    assert dropped == [True]
