"""
Property-based tests for domain input parsing and query-name encoding.

Uses Hypothesis for property-based testing of the comma-separated batch
parser and the IDNA conversion applied to resolver queries.
"""

import idna
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dns_reconciler.domain_input import parse_domain_input, to_query_name
from dns_reconciler.exceptions import ValidationError


# Strategies for generating valid test data

@st.composite
def domain_strategy(draw) -> str:
    """Generate ASCII domains, mixed case allowed."""
    sld = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABC0123456789-"),
        min_size=1,
        max_size=20,
    ).filter(lambda s: not s.startswith("-") and not s.endswith("-")))
    tld = draw(st.sampled_from(["com", "de", "net", "org", "eu"]))
    return f"{sld}.{tld}"


whitespace_strategy = st.text(alphabet=" \t", max_size=3)


class TestParseDomainInputProperty:
    """Batch input is split on commas, trimmed, and empty tokens dropped."""

    @given(
        domains=st.lists(domain_strategy(), min_size=1, max_size=10),
        padding=st.lists(whitespace_strategy, min_size=20, max_size=20),
    )
    @settings(max_examples=100)
    def test_tokens_trimmed_in_order(self, domains: list[str], padding: list[str]) -> None:
        raw = ",".join(
            f"{padding[i % 20]}{d}{padding[(i + 1) % 20]}" for i, d in enumerate(domains)
        )
        assert parse_domain_input(raw) == domains

    @given(domains=st.lists(domain_strategy(), max_size=5))
    @settings(max_examples=50)
    def test_empty_tokens_dropped(self, domains: list[str]) -> None:
        raw = ", ,".join(domains) + ",,  ,"
        assert parse_domain_input(raw) == domains

    @given(domain=domain_strategy())
    @settings(max_examples=50)
    def test_repeats_and_case_preserved(self, domain: str) -> None:
        raw = f"{domain}, {domain.upper()}, {domain}"
        assert parse_domain_input(raw) == [domain, domain.upper(), domain]

    def test_example_batch(self) -> None:
        assert parse_domain_input("a.com, b.com, a.com") == ["a.com", "b.com", "a.com"]

    @pytest.mark.parametrize("raw", ["", " ", ",", " , ,, "])
    def test_nothing_to_add(self, raw: str) -> None:
        assert parse_domain_input(raw) == []


class TestQueryNameProperty:
    """Stored domains are converted into ASCII query names."""

    @given(domain=domain_strategy())
    @settings(max_examples=100)
    def test_ascii_names_unchanged(self, domain: str) -> None:
        assert to_query_name(domain) == domain

    @pytest.mark.parametrize(
        "domain",
        ["münchen.de", "bücher.example", "straße.de"],
    )
    def test_international_names_encoded(self, domain: str) -> None:
        query_name = to_query_name(domain)
        assert query_name.isascii()
        assert query_name == idna.encode(domain, uts46=True).decode("ascii")
        assert "xn--" in query_name

    @pytest.mark.parametrize(
        "domain",
        ["", "   ", "exa mple.com", "bad,name.com", "a/b.com", "semi;colon.de"],
    )
    def test_invalid_names_rejected(self, domain: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            to_query_name(domain)
        assert exc_info.value.code == "invalid_name"
