"""Tests for order payload normalization"""
from decimal import Decimal

import pytest

from storefront_server.models import CartSnapshot, Customer, LineItem, ShippingAddress
from storefront_server.orders import build_order_request, image_path, to_order_line, url_key


@pytest.mark.parametrize(
    "url, expected",
    [
        ("/products/blue-shirt", "blue-shirt"),
        ("https://shop.example.com/products/mug", "mug"),
        ("blue-shirt", "blue-shirt"),
        ("/products/", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_url_key(url, expected):
    assert url_key(url) == expected


@pytest.mark.parametrize(
    "image, expected",
    [
        ("https://cdn.example.com/media/shirt.jpg?width=750", "/media/shirt.jpg"),
        ("/media/shirt.jpg", "/media/shirt.jpg"),
        ("./media_123.png", "./media_123.png"),
        ("http://[::1", "http://[::1"),
        (None, ""),
    ],
)
def test_image_path(image, expected):
    assert image_path(image) == expected


def test_order_line_wire_shape(shirt):
    line = to_order_line(shirt.model_copy(update={"quantity": 2}))

    assert line.model_dump(by_alias=True) == {
        "sku": "SHIRT-1",
        "urlKey": "blue-shirt",
        "name": "Blue Shirt",
        "quantity": 2,
        "price": {"currency": "USD", "final": "25.00"},
        "custom": {"image": "/media/shirt.jpg", "url": "/products/blue-shirt"},
    }


def test_currency_defaults_to_usd():
    line = to_order_line(LineItem(sku="X", price=Decimal("10"), currency=None))

    assert line.price.currency == "USD"
    assert line.price.final == "10"
    assert line.custom.image == ""
    assert line.custom.url == ""


def test_build_order_request(shirt, mug):
    cart = CartSnapshot(items=[shirt, mug], item_count=3, subtotal=Decimal("42"))
    customer = Customer(email="ada@example.com", first_name="Ada", last_name="Lovelace")
    shipping = ShippingAddress(name="Ada Lovelace", address1="1 Main St", city="London", zip="N1", country="GB")

    request = build_order_request(cart, customer, shipping)
    body = request.model_dump(mode="json", by_alias=True, exclude_none=True)

    assert body["customer"] == {"email": "ada@example.com", "firstName": "Ada", "lastName": "Lovelace"}
    assert body["shipping"]["city"] == "London"
    assert [item["sku"] for item in body["items"]] == ["SHIRT-1", "MUG-1"]
    assert body["items"][1]["urlKey"] == "mug"
    assert body["items"][1]["price"] == {"currency": "USD", "final": "8.50"}
