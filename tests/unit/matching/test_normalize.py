"""Tests for label normalization and vendor canonicalization."""

from __future__ import annotations

import pytest

from specialty_match.matching.normalize import key_words, normalize, registry_key, word_set
from specialty_match.matching.vendors import normalize_vendor_name


class TestNormalize:
    """Tests for the separator-preserving normalization."""

    def test_parentheses_and_slash_spacing(self) -> None:
        assert (
            normalize("Surgery(Cardiothoracic/Cardiovascular)")
            == "surgery (cardiothoracic / cardiovascular)"
        )

    def test_spacing_variants_collapse(self) -> None:
        assert normalize("surgery ( cardiothoracic/ cardiovascular )") == normalize(
            "Surgery (Cardiothoracic / Cardiovascular)"
        )

    def test_ampersand_becomes_and(self) -> None:
        assert normalize("Allergy & Immunology") == "allergy and immunology"

    def test_hyphen_spacing(self) -> None:
        assert normalize("Critical Care-Cardiology") == "critical care - cardiology"

    @pytest.mark.parametrize(
        "raw",
        [
            "Surgery(Cardiothoracic/Cardiovascular)",
            "  Family   Practice ",
            "Obstetrics & Gynecology",
            "Critical Care Medicine - Cardiology",
            "Pediatrics ( General )",
            "PM&R",
        ],
    )
    def test_idempotent(self, raw: str) -> None:
        once = normalize(raw)
        assert normalize(once) == once

    def test_blank_input(self) -> None:
        assert normalize("   ") == ""


class TestRegistryKey:
    """Tests for the strict registry key."""

    def test_punctuation_variants_share_key(self) -> None:
        assert registry_key("Allergy & Immunology") == "allergy immunology"
        assert registry_key("Allergy/Immunology") == "allergy immunology"
        assert registry_key("allergy and immunology") == "allergy immunology"

    def test_stopwords_dropped(self) -> None:
        assert key_words("Child and Adolescent Psychiatry") == [
            "child",
            "adolescent",
            "psychiatry",
        ]

    def test_word_set(self) -> None:
        assert word_set("Surgery (Orthopedic)") == {"surgery", "orthopedic"}

    def test_no_alphanumerics(self) -> None:
        assert registry_key("& / -") == ""


class TestVendorNames:
    """Tests for normalize_vendor_name."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("mgma", "MGMA"),
            (" MGMA ", "MGMA"),
            ("Gallagher", "GALLAGHER"),
            ("Sullivan Cotter", "SULLIVANCOTTER"),
            ("sullivan-cotter", "SULLIVANCOTTER"),
            ("SullivanCotter", "SULLIVANCOTTER"),
        ],
    )
    def test_known_vendors(self, raw: str, expected: str) -> None:
        assert normalize_vendor_name(raw) == expected

    def test_unknown_vendor_upper_cased(self) -> None:
        assert normalize_vendor_name("Acme  Survey") == "ACME SURVEY"
