import hashlib

from security.hashing import digests_match, sha256_hex
from security.otp import generate_otp, hash_otp, otp_matches


def test_generate_otp_is_six_digits_in_range():
    for _ in range(500):
        code = generate_otp()
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_generate_otp_varies():
    assert len({generate_otp() for _ in range(50)}) > 1


def test_hash_otp_is_sha256_hex_of_code():
    assert hash_otp("123456") == hashlib.sha256(b"123456").hexdigest()
    assert "123456" not in hash_otp("123456")


def test_otp_matches():
    stored = hash_otp("654321")
    assert otp_matches("654321", stored)
    assert not otp_matches("654320", stored)
    assert not otp_matches("", stored)
    assert not otp_matches(None, stored)


def test_digests_match_rejects_non_strings():
    digest = sha256_hex("x")
    assert digests_match(digest, sha256_hex("x"))
    assert not digests_match(digest, None)
