"""Credential hashing, random tokens and client metadata."""

import pytest
from passlib.crypto.digest import pbkdf2_hmac
from starlette.requests import Request

from core.exceptions import InvalidHashFormat, InvalidInput, InvalidIterations
from core.security import (
    generate_token,
    generate_uuid,
    get_client_ip,
    get_user_agent,
    hash_password,
    verify_password,
)

ROUNDS = 1000


class TestHashPassword:
    def test_record_format(self) -> None:
        record = hash_password("s3cret", iterations=ROUNDS)
        algorithm, rounds, salt, digest = record.split("$")
        assert algorithm == "pbkdf2_sha256"
        assert rounds == str(ROUNDS)
        assert len(salt) == 32
        assert len(digest) == 64
        int(salt, 16)
        int(digest, 16)

    def test_default_rounds_come_from_settings(self) -> None:
        record = hash_password("s3cret")
        assert record.split("$")[1] == "100000"

    def test_same_password_hashes_differently(self) -> None:
        assert hash_password("s3cret", iterations=ROUNDS) != hash_password("s3cret", iterations=ROUNDS)

    def test_empty_password_rejected(self) -> None:
        with pytest.raises(InvalidInput):
            hash_password("")


class TestVerifyPassword:
    def test_round_trip(self) -> None:
        record = hash_password("s3cret", iterations=ROUNDS)
        assert verify_password("s3cret", record) is True

    def test_wrong_password(self) -> None:
        record = hash_password("s3cret", iterations=ROUNDS)
        assert verify_password("s3creT", record) is False

    @pytest.mark.parametrize("position", [0, 31, 63])
    def test_tampered_digest(self, position: int) -> None:
        record = hash_password("s3cret", iterations=ROUNDS)
        head, digest = record.rsplit("$", 1)
        flipped = format(int(digest[position], 16) ^ 1, "x")
        tampered = f"{head}$" + digest[:position] + flipped + digest[position + 1:]
        assert verify_password("s3cret", tampered) is False

    def test_empty_candidate_is_a_mismatch(self) -> None:
        record = hash_password("s3cret", iterations=ROUNDS)
        assert verify_password("", record) is False

    def test_salt_is_fed_as_hex_text(self) -> None:
        salt = "00112233445566778899aabbccddeeff"
        digest = pbkdf2_hmac("sha256", b"legacy-pw", salt.encode(), 2000, 32).hex()
        assert verify_password("legacy-pw", f"pbkdf2_sha256$2000${salt}${digest}") is True

    def test_rounds_are_read_from_the_record(self) -> None:
        record = hash_password("s3cret", iterations=1500)
        assert verify_password("s3cret", record) is True

    @pytest.mark.parametrize(
        "record",
        [
            "",
            "garbage",
            "bcrypt$1000$abcd$abcd",
            "pbkdf2_sha256$1000$abcd",
            "pbkdf2_sha256$1000$abcd$abcd$extra",
            "pbkdf2_sha256$1000$$abcd",
            "pbkdf2_sha256$1000$abcd$not-hex",
            "pbkdf2_sha256$1000$abcd$",
        ],
    )
    def test_malformed_record(self, record: str) -> None:
        with pytest.raises(InvalidHashFormat):
            verify_password("s3cret", record)

    @pytest.mark.parametrize("keep", [1, 16, 31])
    def test_truncated_digest_is_malformed(self, keep: int) -> None:
        algorithm, rounds, salt, digest = hash_password("s3cret", iterations=ROUNDS).split("$")
        short = f"{algorithm}${rounds}${salt}${digest[: keep * 2]}"
        with pytest.raises(InvalidHashFormat):
            verify_password("s3cret", short)

    @pytest.mark.parametrize("rounds", ["abc", "0", "-5", "1.5"])
    def test_bad_round_count(self, rounds: str) -> None:
        with pytest.raises(InvalidIterations):
            verify_password("s3cret", f"pbkdf2_sha256${rounds}$abcd$abcd")


class TestTokens:
    def test_token_is_64_hex_chars(self) -> None:
        token = generate_token()
        assert len(token) == 64
        int(token, 16)

    def test_tokens_do_not_repeat(self) -> None:
        assert len({generate_token() for _ in range(50)}) == 50

    def test_uuid_shape(self) -> None:
        value = generate_uuid()
        assert len(value) == 36
        assert value[14] == "4"


def _request(headers: dict, client=("10.0.0.9", 5555)) -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
            "client": client,
        }
    )


class TestClientMetadata:
    def test_forwarded_for_wins(self) -> None:
        request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
        assert get_client_ip(request) == "203.0.113.7"

    def test_falls_back_to_peer(self) -> None:
        assert get_client_ip(_request({})) == "10.0.0.9"

    def test_unknown_client(self) -> None:
        assert get_client_ip(_request({}, client=None)) is None

    def test_user_agent_is_truncated(self) -> None:
        request = _request({"User-Agent": "x" * 600})
        assert len(get_user_agent(request)) == 512

    def test_missing_user_agent(self) -> None:
        assert get_user_agent(_request({})) is None
