"""Tests for response parsing, signature checks and classification."""

import pytest

from yubiotp_verifier import ParameterNotFound, Verdict, classify, get_parameters
from yubiotp_verifier.response import (
    duplicated_fields,
    parse_fields,
    response_check_string,
    verify_signature,
)

from conftest import KEY, OTP, make_body

NONCE = "5b4a2f6c0d9e4e1fa3c8b7d6e5f40312"
OTHER_OTP = "ccccccbchvth" + "c" * 32


class TestParseFields:
    """Tests for parse_fields."""

    def test_splits_on_first_equals(self):
        """Base64 padding in values survives."""
        fields = parse_fields("h=ab+c/d==\r\nstatus=OK\r\n\r\n")
        assert fields == {"h": "ab+c/d==", "status": "OK"}

    def test_skips_lines_without_value(self):
        """Lines without = are ignored."""
        assert parse_fields("garbage\r\nstatus=OK") == {"status": "OK"}

    def test_duplicated_fields(self):
        """Fields on more than one line are reported."""
        body = "status=OK\r\notp=a\r\nstatus=BAD_OTP\r\n"
        assert duplicated_fields(body) == {"status"}
        assert duplicated_fields(make_body(OTP, NONCE)) == set()

    def test_check_string_sorted_and_filtered(self):
        """Only signed fields that are present, in sorted order."""
        fields = {
            "status": "OK",
            "otp": OTP,
            "h": "ignored",
            "nonce": NONCE,
            "timestamp": "42",
            "unrelated": "x",
        }
        assert response_check_string(fields) == (
            f"nonce={NONCE}&otp={OTP}&status=OK&timestamp=42"
        )


class TestRelevance:
    """Responses must echo the request's otp and nonce."""

    @pytest.mark.parametrize("status", ["OK", "REPLAYED_OTP"])
    def test_otp_mismatch_ignored(self, status):
        """A different otp never classifies as decisive."""
        body = make_body(OTHER_OTP, NONCE, status)
        result = classify(body, otp=OTP, nonce=NONCE)

        assert result.verdict is None
        assert result.relevant is False
        assert result.status == status

    @pytest.mark.parametrize("status", ["OK", "REPLAYED_OTP"])
    def test_nonce_mismatch_ignored(self, status):
        """A different nonce never classifies as decisive."""
        body = make_body(OTP, "f" * 32, status, key=KEY)
        result = classify(body, otp=OTP, nonce=NONCE, key=KEY)

        assert result.verdict is None
        assert result.relevant is False

    def test_no_status(self):
        """A body without status is not classified."""
        result = classify("<html>Bad gateway</html>", otp=OTP, nonce=NONCE)
        assert result.status is None
        assert result.verdict is None


class TestSignedResponses:
    """Responses checked against the shared key."""

    def test_valid_signature(self):
        """A correctly signed OK is valid."""
        body = make_body(OTP, NONCE, "OK", key=KEY)
        result = classify(body, otp=OTP, nonce=NONCE, key=KEY)

        assert result.verdict is Verdict.VALID
        assert result.signature_ok is True
        assert result.checked

    def test_replayed(self):
        """A correctly signed REPLAYED_OTP is a replay."""
        body = make_body(OTP, NONCE, "REPLAYED_OTP", key=KEY)
        result = classify(body, otp=OTP, nonce=NONCE, key=KEY)
        assert result.verdict is Verdict.REPLAYED

    def test_corrupted_signature(self):
        """Changing any character of h makes the body not decisive."""
        body = make_body(OTP, NONCE, "OK", key=KEY)
        signature = parse_fields(body)["h"]

        for index, char in enumerate(signature):
            replacement = "A" if char != "A" else "B"
            corrupted = signature[:index] + replacement + signature[index + 1:]
            tampered = body.replace(f"h={signature}", f"h={corrupted}")

            result = classify(tampered, otp=OTP, nonce=NONCE, key=KEY)

            assert result.verdict is None
            assert result.signature_ok is False
            assert not result.checked

    def test_tampered_field(self):
        """Changing a signed field after signing invalidates the body."""
        body = make_body(OTP, NONCE, "REPLAYED_OTP", key=KEY)
        tampered = body.replace("status=REPLAYED_OTP", "status=OK")

        result = classify(tampered, otp=OTP, nonce=NONCE, key=KEY)
        assert result.verdict is None

    def test_missing_signature(self):
        """An unsigned body is rejected when a key is configured."""
        body = make_body(OTP, NONCE, "OK")
        result = classify(body, otp=OTP, nonce=NONCE, key=KEY)

        assert result.verdict is None
        assert result.signature_ok is False

    def test_wrong_key(self):
        """A body signed with another key is rejected."""
        body = make_body(OTP, NONCE, "OK", key=b"another key")
        assert not verify_signature(parse_fields(body), KEY)

    def test_session_fields_signed(self):
        """timestamp and session counters are covered by the signature."""
        body = make_body(
            OTP, NONCE, "OK", key=KEY,
            timestamp="1234567", sessioncounter="17", sessionuse="3",
        )
        assert classify(body, otp=OTP, nonce=NONCE, key=KEY).verdict is Verdict.VALID

        tampered = body.replace("sessioncounter=17", "sessioncounter=18")
        assert classify(tampered, otp=OTP, nonce=NONCE, key=KEY).verdict is None

    @pytest.mark.parametrize("status", ["BAD_OTP", "REPLAYED_OTP"])
    def test_prepended_status_line(self, status):
        """An unsigned status line in front of a signed body is not trusted."""
        body = "status=OK\r\n" + make_body(OTP, NONCE, status, key=KEY)

        result = classify(body, otp=OTP, nonce=NONCE, key=KEY)

        assert result.verdict is None
        assert result.relevant is False

    def test_repeated_signed_field(self):
        """A signed field appearing twice makes the body unclassifiable."""
        body = make_body(OTP, NONCE, "OK", key=KEY, sessioncounter="17")
        assert classify(body, otp=OTP, nonce=NONCE, key=KEY).verdict is Verdict.VALID

        tampered = "sessioncounter=0\r\n" + body
        assert classify(tampered, otp=OTP, nonce=NONCE, key=KEY).verdict is None


class TestUnsignedResponses:
    """Responses classified directly when no key is configured."""

    def test_ok(self):
        """OK is valid."""
        result = classify(make_body(OTP, NONCE, "OK"), otp=OTP, nonce=NONCE)
        assert result.verdict is Verdict.VALID
        assert result.signature_ok is None

    def test_replayed(self):
        """REPLAYED_OTP is a replay."""
        result = classify(make_body(OTP, NONCE, "REPLAYED_OTP"), otp=OTP, nonce=NONCE)
        assert result.verdict is Verdict.REPLAYED

    @pytest.mark.parametrize("status", ["NO_SUCH_CLIENT", "BAD_OTP", "BACKEND_ERROR"])
    def test_other_status_recorded(self, status):
        """Other statuses are recorded but not decisive."""
        result = classify(make_body(OTP, NONCE, status), otp=OTP, nonce=NONCE)

        assert result.verdict is None
        assert result.status == status
        assert result.checked

    def test_status_read_from_its_own_line(self):
        """status must be a whole line; repeated status lines are rejected."""
        body = make_body(OTP, NONCE, "BAD_OTP", info="status=OK")
        result = classify(body, otp=OTP, nonce=NONCE)
        assert result.status == "BAD_OTP"
        assert result.verdict is None

        doubled = "status=OK\r\n" + make_body(OTP, NONCE, "BAD_OTP")
        assert classify(doubled, otp=OTP, nonce=NONCE).verdict is None


class TestGetParameters:
    """Tests for get_parameters."""

    BODY = make_body(
        OTP, NONCE, "OK", timestamp="1234567", sessioncounter="17", sessionuse="3"
    )

    def test_default_parameters(self):
        """timestamp, sessioncounter and sessionuse by default."""
        assert get_parameters(self.BODY) == {
            "timestamp": "1234567",
            "sessioncounter": "17",
            "sessionuse": "3",
        }

    def test_selected_parameters(self):
        """Only the requested fields are returned."""
        assert get_parameters(self.BODY, ["sessionuse"]) == {"sessionuse": "3"}

    def test_missing_parameter(self):
        """A missing field raises ParameterNotFound."""
        with pytest.raises(ParameterNotFound, match="sessioncounter"):
            get_parameters(make_body(OTP, NONCE, "OK"), ["sessioncounter"])

    def test_empty_response(self):
        """Nothing can be parsed from an empty response."""
        with pytest.raises(ParameterNotFound):
            get_parameters("")

    def test_repeated_parameter(self):
        """A counter appearing twice in one response is rejected."""
        body = "sessioncounter=0\r\n" + self.BODY

        with pytest.raises(ParameterNotFound, match="more than once"):
            get_parameters(body, ["sessioncounter"])
        assert get_parameters(body, ["sessionuse"]) == {"sessionuse": "3"}

    def test_whole_line_only(self):
        """A longer field name ending in the requested one does not match."""
        body = make_body(OTP, NONCE, "OK", xsessioncounter="5")
        with pytest.raises(ParameterNotFound):
            get_parameters(body, ["sessioncounter"])

    def test_tagged_responses(self):
        """In wait-for-all output the first response carrying the field wins."""
        other = make_body(OTP, NONCE, "OK", sessioncounter="99")
        body = (
            f"URL=https://api1.test/verify?a=1\n{self.BODY}\n"
            f"URL=https://api2.test/verify?a=1\n{other}\n"
        )
        assert get_parameters(body, ["sessioncounter"]) == {"sessioncounter": "17"}
