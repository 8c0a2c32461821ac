"""Tests for address normalization, Soundex and blocking keys."""

import pytest

from rentaliq.engine.normalize import (
    blocking_key,
    extract_unit,
    house_number,
    normalize_address,
    normalize_street,
    normalize_zip,
    soundex,
    street_name_core,
)
from rentaliq.models.property import Address


class TestNormalizeStreet:
    def test_expands_type_and_directional(self):
        assert normalize_street("123 N. Main St.") == "123 NORTH MAIN STREET"

    def test_abbreviated_and_spelled_out_agree(self):
        assert normalize_street("123 North Main Street") == normalize_street("123 n main st")

    def test_strips_unit_designators(self):
        assert normalize_street("55 Elm Ave Apt 4B") == "55 ELM AVENUE"
        assert normalize_street("55 Elm Ave #4B") == "55 ELM AVENUE"
        assert normalize_street("55 Elm Ave, Suite 200") == "55 ELM AVENUE"

    def test_designator_followed_by_hash(self):
        assert normalize_street("123 Main St Apt #4") == "123 MAIN STREET"
        assert normalize_street("123 Main St Unit # 4") == "123 MAIN STREET"

    def test_leading_saint_is_not_a_street_type(self):
        assert normalize_street("9 St James Pl") == "9 ST JAMES PLACE"

    def test_trailing_directional_keeps_type_expansion(self):
        assert normalize_street("700 Broad St SW") == "700 BROAD STREET SOUTHWEST"

    def test_empty(self):
        assert normalize_street("") == ""


class TestUnitsAndZip:
    def test_unit_from_street(self):
        assert extract_unit("55 Elm Ave Apt 4B") == "4B"

    def test_unit_from_explicit_field(self):
        assert extract_unit("55 Elm Ave", "Unit 7") == "7"
        assert extract_unit("55 Elm Ave", "12") == "12"

    def test_unit_after_designator_and_hash(self):
        assert extract_unit("123 Main St Apt #4") == "4"
        assert extract_unit("123 Main St", "Apt #4") == "4"
        assert extract_unit("123 Main St", "#4") == "4"
        assert extract_unit("123 Main St Apt #4") != extract_unit("123 Main St Apt #5")

    def test_no_unit(self):
        assert extract_unit("55 Elm Ave") == ""

    def test_zip_plus_four(self):
        assert normalize_zip("43215-1234") == "43215"


class TestSoundex:
    @pytest.mark.parametrize("word,code", [
        ("ROBERT", "R163"),
        ("RUPERT", "R163"),
        ("ASHCRAFT", "A261"),
        ("TYMCZAK", "T522"),
        ("PFISTER", "P236"),
        ("LEE", "L000"),
    ])
    def test_known_codes(self, word, code):
        assert soundex(word) == code

    def test_empty(self):
        assert soundex("") == ""


class TestBlockingKey:
    def test_core_strips_number_directional_and_type(self):
        assert street_name_core("123 NORTH MAIN STREET") == "MAIN"
        assert house_number("123 NORTH MAIN STREET") == "123"

    def test_variants_share_a_block(self):
        a = Address(street="123 N Main St", zip_code="43215")
        b = Address(street="123 North Main Street Apt 2", zip_code="43215-0001")
        assert blocking_key(a) == blocking_key(b) == "43215|123|M500"

    def test_different_house_numbers_split_blocks(self):
        a = Address(street="123 Main St", zip_code="43215")
        b = Address(street="125 Main St", zip_code="43215")
        assert blocking_key(a) != blocking_key(b)

    def test_normalized_address_includes_zip(self):
        assert normalize_address(Address(street="1 Oak Ave", zip_code="43215")) == "1 OAK AVENUE 43215"
