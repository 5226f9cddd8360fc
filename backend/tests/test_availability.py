from models.article import Article
from models.product import Product, ProductArticle
from services.availability import ProductAvailability, classify_product


def _article(quantity, threshold=20):
    return Article(code=f"A{quantity}", name="A", category="raw", quantity=quantity, threshold=threshold)


def _product(*compositions):
    """compositions: (article, required_quantity) pairs."""
    product = Product(code="P", name="P", category="kit", price=0)
    for article, required in compositions:
        product.articles.append(ProductArticle(article=article, quantity=required))
    return product


def test_product_without_articles_is_available():
    assert classify_product(_product()) == ProductAvailability.AVAILABLE
    assert classify_product(_product(), []) == ProductAvailability.AVAILABLE


def test_one_article_out_makes_product_unavailable():
    """A: 100/20 needs 2, B: 0 needs 1 -> unavailable."""
    product = _product((_article(100), 2), (_article(0), 1))
    assert classify_product(product) == ProductAvailability.UNAVAILABLE


def test_insufficient_quantity_is_unavailable_even_if_available_status():
    # 50 units with threshold 20 is "available" but the product needs 60
    product = _product((_article(50), 60))
    assert classify_product(product) == ProductAvailability.UNAVAILABLE


def test_insufficiency_wins_over_limited():
    product = _product((_article(10), 1), (_article(100), 200))
    assert classify_product(product) == ProductAvailability.UNAVAILABLE


def test_low_or_critical_article_makes_product_limited():
    assert classify_product(_product((_article(100), 1), (_article(15), 1))) == ProductAvailability.LIMITED
    assert classify_product(_product((_article(100), 1), (_article(3), 1))) == ProductAvailability.LIMITED


def test_all_articles_available():
    product = _product((_article(100), 2), (_article(30), 30))
    assert classify_product(product) == ProductAvailability.AVAILABLE


def test_required_equal_to_stock_is_enough():
    product = _product((_article(30), 30))
    assert classify_product(product) == ProductAvailability.AVAILABLE


def test_explicit_composition_list_overrides_product_articles():
    product = _product((_article(0), 1))
    available = ProductArticle(article=_article(100), quantity=1)
    assert classify_product(product, [available]) == ProductAvailability.AVAILABLE


def test_composition_without_article_is_ignored():
    orphan = ProductArticle(article_id=999, quantity=5)
    assert classify_product(Product(code="P", name="P", category="kit"), [orphan]) == ProductAvailability.AVAILABLE
