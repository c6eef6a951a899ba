from __future__ import annotations

from hostcheck.engine.caa import (
    ALLOWED,
    NOT_ALLOWED,
    ParsedCAA,
    decode_all,
    decode_caa,
    evaluate_authorities,
    is_authority_permitted,
)
from hostcheck.engine.doh import DNSAnswer


def _caa(data: str, rr_type: int = 257) -> DNSAnswer:
    return DNSAnswer(name="example.com", type=rr_type, ttl=300, data=data)


def _generic(flags: int, tag: str, value: str) -> str:
    raw = bytes([flags, len(tag)]) + tag.encode() + value.encode()
    return f"\\# {len(raw)} " + " ".join(f"{b:02x}" for b in raw)


def test_decode_text_form():
    assert decode_caa(_caa('0 issue "example.com"')) == ParsedCAA(critical=False, tag="issue", value="example.com")
    assert decode_caa(_caa('128 issue "example.com"')) == ParsedCAA(critical=True, tag="issue", value="example.com")


def test_decode_text_form_unquoted_value():
    parsed = decode_caa(_caa("0 iodef mailto:security@example.com"))
    assert parsed == ParsedCAA(critical=False, tag="iodef", value="mailto:security@example.com")


def test_decode_generic_hex_form():
    parsed = decode_caa(_caa(_generic(0, "issue", "letsencrypt.org")))
    assert parsed == ParsedCAA(critical=False, tag="issue", value="letsencrypt.org")

    critical = decode_caa(_caa(_generic(128, "issuewild", "pki.goog")))
    assert critical is not None
    assert critical.critical is True
    assert critical.tag == "issuewild"


def test_decode_non_caa_answer_returns_none():
    assert decode_caa(_caa('0 issue "example.com"', rr_type=16)) is None
    assert decode_caa(_caa("1.2.3.4", rr_type=1)) is None


def test_decode_malformed_data_returns_none():
    assert decode_caa(_caa("\\# 3")) is None
    assert decode_caa(_caa("\\# 2 0")) is None
    assert decode_caa(_caa("\\# 4 00 09 69 73")) is None
    assert decode_caa(_caa("\\# 2 zz zz")) is None
    assert decode_caa(_caa("issue letsencrypt.org")) is None
    assert decode_caa(_caa("")) is None


def test_decode_all_skips_undecodable_answers():
    answers = [_caa('0 issue "pki.goog"'), _caa("garbage"), _caa("1.2.3.4", rr_type=1)]
    assert decode_all(answers) == [ParsedCAA(critical=False, tag="issue", value="pki.goog")]


def test_empty_record_set_allows_everyone():
    assert is_authority_permitted([], "pki.goog") == ALLOWED


def test_authority_must_appear_in_issue_or_issuewild():
    records = [ParsedCAA(False, "issue", "letsencrypt.org")]
    assert is_authority_permitted(records, "pki.goog") == NOT_ALLOWED
    assert is_authority_permitted(records, "letsencrypt.org") == ALLOWED

    iodef_only = [ParsedCAA(False, "iodef", "mailto:pki.goog@example.com")]
    assert is_authority_permitted(iodef_only, "pki.goog") == NOT_ALLOWED


def test_authority_match_is_substring():
    records = [ParsedCAA(False, "issuewild", "letsencrypt.org; validationmethods=dns-01")]
    assert is_authority_permitted(records, "letsencrypt.org") == ALLOWED


def test_evaluate_authorities_returns_independent_verdicts():
    records = [ParsedCAA(False, "issue", "pki.goog"), ParsedCAA(False, "issue", "ssl.com")]
    assert evaluate_authorities(records) == {
        "ssl_google": ALLOWED,
        "ssl_ssl_com": ALLOWED,
        "ssl_lets_encrypt": NOT_ALLOWED,
    }
    assert set(evaluate_authorities([]).values()) == {ALLOWED}
