"""
Shared test fixtures: SQLite test database, test client, sample catalog data.
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set DATABASE_URL before importing app modules
os.environ["DATABASE_URL"] = "sqlite:///./test.db"

from estimator.database import Base, get_db
from estimator.main import app
from estimator.routers.catalog import seed_catalog
from estimator.schemas import ElementDefinition, Module, Parameter, Template, TemplateElement


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_db(db):
    """Database session with the default catalog loaded."""
    seed_catalog(db)
    return db


# --- Sample domain objects ---

@pytest.fixture
def parameters():
    return [
        Parameter(id=1, name="length", value=5, type="linear feet"),
        Parameter(id=2, name="width", value=3, type="linear feet"),
        Parameter(id=3, name="count", value=2, type="count"),
    ]


@pytest.fixture
def module_a():
    return Module(id=1, name="Framing", description="Wall framing")


@pytest.fixture
def module_b():
    return Module(id=2, name="Painting", description="Interior paint")


@pytest.fixture
def area_element():
    return ElementDefinition(
        id=10, name="Drywall", formula="length * width * 2", labor_formula="length * width",
    )


@pytest.fixture
def count_element():
    return ElementDefinition(
        id=11, name="Doors", formula="count * 50", labor_formula="count * 25", markup=20,
    )


@pytest.fixture
def template(parameters, module_a, module_b, area_element, count_element):
    return Template(
        id=7,
        name="Starter",
        description="Two trades, two elements",
        image=None,
        modules=[module_a, module_b],
        parameters=parameters,
        template_elements=[
            TemplateElement(element=area_element, module=module_a, markup=None),
            TemplateElement(element=count_element, module=module_b, markup=25),
        ],
    )
