"""Tests for brand lookup and instruction sets."""

import pytest

from catalog_extractor.extraction import RESPONSE_SCHEMA, Brand, get_instructions


class TestBrand:
    @pytest.mark.parametrize("value", ["natura", "NATURA", " Natura "])
    def test_parse_is_case_insensitive(self, value):
        assert Brand.parse(value) is Brand.NATURA

    def test_parse_passes_enum_through(self):
        assert Brand.parse(Brand.BELCORP) is Brand.BELCORP

    def test_unknown_brand_lists_supported(self):
        with pytest.raises(ValueError, match="belcorp, natura, generic"):
            Brand.parse("avon")


class TestGetInstructions:
    @pytest.mark.parametrize("brand", list(Brand))
    def test_every_brand_has_instructions(self, brand):
        instructions = get_instructions(brand)
        assert instructions.brand is brand
        assert instructions.instruction.strip()
        assert instructions.response_schema is RESPONSE_SCHEMA

    def test_natura_defaults_brand_name(self):
        assert get_instructions("natura").default_brand == "Natura"
        assert get_instructions("belcorp").default_brand == "N/A"

    def test_instructions_differ_per_brand(self):
        texts = {get_instructions(b).instruction for b in Brand}
        assert len(texts) == len(Brand)

    def test_natura_mentions_refills(self):
        assert "repuesto" in get_instructions("natura").instruction.lower()


class TestResponseSchema:
    def test_array_of_products(self):
        assert RESPONSE_SCHEMA["type"] == "ARRAY"
        properties = RESPONSE_SCHEMA["items"]["properties"]
        assert set(properties) == {
            "code",
            "name",
            "presentation",
            "content",
            "offerPrice",
            "regularPrice",
        }

    def test_required_fields(self):
        assert RESPONSE_SCHEMA["items"]["required"] == ["code", "name", "regularPrice"]
