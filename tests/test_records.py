"""Tests for the canonical product schema.

Tests cover:
- Price / MRP rules
- Product name rules
- Normalized-name deduplication
- Wire form
"""

from decimal import Decimal

import pytest

from ecomscout.scrapers.records import (
    ExtractionResult,
    ProductRecord,
    dedupe_products,
    is_valid_name,
)


class TestProductRecord:
    """Tests for ProductRecord validation."""

    def test_valid_record_coerces_numbers(self):
        """Test prices given as int/str become Decimal."""
        record = ProductRecord(name="Amul Taaza Milk 500 ml", price=27, mrp="30", discount=3)

        assert record.price == Decimal("27")
        assert record.mrp == Decimal("30")
        assert record.discount == Decimal("3")

    def test_mrp_below_price_rejected(self):
        """Test mrp must be >= price."""
        with pytest.raises(ValueError, match="mrp must be >= price"):
            ProductRecord(name="Amul Butter 100 g", price=Decimal("60"), mrp=Decimal("55"))

    def test_mrp_equal_to_price_allowed(self):
        record = ProductRecord(name="Amul Butter 100 g", price=Decimal("60"), mrp=Decimal("60"))
        assert record.mrp == record.price

    @pytest.mark.parametrize("price", [0, -5])
    def test_non_positive_price_rejected(self, price):
        """Test price must be > 0 when set."""
        with pytest.raises(ValueError, match="price must be positive"):
            ProductRecord(name="Amul Butter 100 g", price=price)

    @pytest.mark.parametrize("value", [Decimal("NaN"), Decimal("Infinity"), float("nan"), float("-inf"), "Infinity"])
    def test_non_finite_numbers_dropped(self, value):
        record = ProductRecord(name="Amul Butter 100 g", price=value, mrp=value)
        assert record.price is None
        assert record.mrp is None
        assert record.to_dict()["price"] is None

    def test_price_optional(self):
        record = ProductRecord(name="Amul Butter 100 g")
        assert record.price is None
        assert record.mrp is None

    def test_name_whitespace_collapsed(self):
        record = ProductRecord(name="  Tata   Salt \n 1 kg ", price=28)
        assert record.name == "Tata Salt 1 kg"

    @pytest.mark.parametrize(
        "name",
        ["", "ab", "₹ 49", "49.00", "Rs. 120", "MRP", "Add to Cart", "x" * 200],
    )
    def test_invalid_names_rejected(self, name):
        """Test short, numeric, currency-only, label and overlong names."""
        with pytest.raises(ValueError, match="invalid product name"):
            ProductRecord(name=name, price=10)

    def test_to_dict_uses_camel_case_and_json_numbers(self):
        record = ProductRecord(
            name="Aashirvaad Atta 5 kg",
            price=Decimal("245.50"),
            mrp=Decimal("300"),
            discount=Decimal("54.50"),
            discount_amount=Decimal("54.50"),
            is_out_of_stock=True,
            image_url="https://cdn.example.in/atta.jpg",
            product_url="https://www.example.in/p/atta",
        )

        data = record.to_dict()

        assert data == {
            "name": "Aashirvaad Atta 5 kg",
            "price": 245.5,
            "mrp": 300,
            "discount": 54.5,
            "discountAmount": 54.5,
            "isOutOfStock": True,
            "imageUrl": "https://cdn.example.in/atta.jpg",
            "productUrl": "https://www.example.in/p/atta",
        }
        assert isinstance(data["mrp"], int)


class TestNameRules:
    """Tests for is_valid_name."""

    def test_length_window(self):
        assert is_valid_name("Oil")
        assert not is_valid_name("Oi")
        assert is_valid_name("a" * 199)
        assert not is_valid_name("a" * 200)

    def test_names_with_digits_allowed(self):
        assert is_valid_name("Fortune Sunflower Oil 1 L")
        assert is_valid_name("7 Up 750 ml")


class TestDeduplication:
    """Tests for first-wins deduplication by normalized name."""

    def test_dedupe_first_wins(self):
        first = ProductRecord(name="Amul Gold Milk", price=34)
        second = ProductRecord(name="  amul GOLD milk ", price=35)
        third = ProductRecord(name="Amul Taaza Milk", price=27)

        result = dedupe_products([first, second, third])

        assert result == [first, third]

    def test_extraction_result_dedupes_on_construction(self):
        result = ExtractionResult(
            website="dmart",
            location="RT Nagar",
            product="milk",
            products=[
                ProductRecord(name="Amul Gold Milk", price=34),
                ProductRecord(name="AMUL GOLD MILK", price=30),
            ],
        )

        assert len(result.products) == 1
        assert result.products[0].price == Decimal("34")
        assert not result.is_empty

    def test_empty_result(self):
        result = ExtractionResult(website="zepto", location="RT Nagar", product="milk")

        assert result.is_empty
        data = result.to_dict()
        assert data["products"] == []
        assert data["website"] == "zepto"
        assert "timestamp" in data
