
import re

from analytics_api.core import security
from analytics_api.core.security import (
    create_api_key,
    hash_api_key,
    is_admin_key,
    is_well_formed_api_key,
    verify_api_key,
)


def test_create_api_key_format():
    key = create_api_key()
    assert re.fullmatch(r"ak_[0-9a-f]{64}", key)
    assert is_well_formed_api_key(key)


def test_create_api_key_is_random():
    assert len({create_api_key() for _ in range(20)}) == 20


def test_malformed_keys_rejected():
    assert not is_well_formed_api_key(None)
    assert not is_well_formed_api_key("")
    assert not is_well_formed_api_key("ak_short")
    assert not is_well_formed_api_key("ak_" + "G" * 64)
    assert not is_well_formed_api_key("ak_" + "a" * 63)
    assert not is_well_formed_api_key("x" * 17 + "a" * 64)
    assert not is_well_formed_api_key("ak-" + "a" * 64)


def test_keys_survive_prefix_change(monkeypatch):
    old_key = create_api_key()
    monkeypatch.setattr(security.settings, "API_KEY_PREFIX", "pk_live_")

    new_key = create_api_key()

    assert new_key.startswith("pk_live_")
    assert is_well_formed_api_key(new_key)
    assert is_well_formed_api_key(old_key)
    assert verify_api_key(old_key, hash_api_key(old_key)) is True


def test_hash_never_contains_plaintext():
    key = create_api_key()
    hashed = hash_api_key(key)
    assert key not in hashed
    assert key[3:] not in hashed
    assert hashed.startswith("$argon2")


def test_verify_api_key():
    key = create_api_key()
    hashed = hash_api_key(key)
    assert verify_api_key(key, hashed) is True
    assert verify_api_key(create_api_key(), hashed) is False


def test_verify_api_key_with_corrupt_hash():
    assert verify_api_key(create_api_key(), "not-a-hash") is False


def test_admin_key(monkeypatch):
    monkeypatch.setattr(security.settings, "ADMIN_API_KEY", "super-secret-admin")
    assert is_admin_key("super-secret-admin") is True
    assert is_admin_key("super-secret-admiN") is False
    assert is_admin_key(None) is False


def test_admin_key_disabled_by_default(monkeypatch):
    monkeypatch.setattr(security.settings, "ADMIN_API_KEY", None)
    assert is_admin_key("") is False
    assert is_admin_key("anything") is False
