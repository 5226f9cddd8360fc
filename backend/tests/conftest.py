import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, create_db_engine, get_db
from models.users import User
from models.article import Article
from models.product import Product, ProductArticle
import models.log  # noqa: F401
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token


def _make_engine(enforce_foreign_keys=True):
    engine = create_db_engine(
        "sqlite://",
        enforce_foreign_keys=enforce_foreign_keys,
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def engine():
    engine = _make_engine()
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    """
    Fresh in-memory database per test.
    Foreign keys are enforced, so ON DELETE CASCADE behaves as in PostgreSQL.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def loose_db_session() -> Session:
    """
    Same as db_session but without foreign key enforcement; lets a test
    store rows that point at products/articles which do not exist.
    """
    engine = _make_engine(enforce_foreign_keys=False)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


# ---------- data builders ----------

@pytest.fixture
def make_article(db_session):
    counter = {"n": 0}

    def _make(quantity=100, threshold=20, code=None, session=None, **kwargs):
        counter["n"] += 1
        db = session or db_session
        article = Article(
            code=code or f"ART-{counter['n']:03d}",
            name=kwargs.pop("name", f"Article {counter['n']}"),
            category=kwargs.pop("category", "raw"),
            quantity=quantity,
            threshold=threshold,
            **kwargs,
        )
        db.add(article)
        db.commit()
        db.refresh(article)
        return article

    return _make


@pytest.fixture
def make_product(db_session):
    counter = {"n": 0}

    def _make(compositions=(), price=500, code=None, session=None, **kwargs):
        """compositions: iterable of (article, required_quantity)."""
        counter["n"] += 1
        db = session or db_session
        product = Product(
            code=code or f"PRD-{counter['n']:03d}",
            name=kwargs.pop("name", f"Product {counter['n']}"),
            category=kwargs.pop("category", "kit"),
            price=price,
            **kwargs,
        )
        db.add(product)
        db.flush()
        for article, required in compositions:
            db.add(ProductArticle(product_id=product.id, article_id=article.id, quantity=required))
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def stock(db_session):
    """stock(article_id) -> current quantity straight from the database."""
    def _stock(article_id, session=None):
        db = session or db_session
        db.expire_all()
        return db.get(Article, article_id).quantity
    return _stock


# ---------- API ----------

@pytest.fixture
def app(session_factory):
    from main import app as fastapi_app

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def users(db_session):
    """Primary admin (id 1), an operator and a plain user."""
    admin = User(id=1, email="admin@example.com", password_hash=get_password_hash("admin123"), name="Admin", role="admin")
    operator = User(email="operator@example.com", password_hash=get_password_hash("operator123"), name="Operator", role="operator")
    viewer = User(email="viewer@example.com", password_hash=get_password_hash("viewer123"), name="Viewer", role="user")
    db_session.add_all([admin, operator, viewer])
    db_session.commit()
    return {"admin": admin, "operator": operator, "user": viewer}


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(users):
    return auth_headers(users["admin"])


@pytest.fixture
def operator_headers(users):
    return auth_headers(users["operator"])


@pytest.fixture
def user_headers(users):
    return auth_headers(users["user"])
