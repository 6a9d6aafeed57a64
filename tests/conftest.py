from __future__ import annotations

import random

import numpy as np
import pandas as pd
import pytest
from hypothesis import HealthCheck, settings

from rule_dedupe.field_types import SchemaFieldTypeResolver
from rule_dedupe.planner import CandidateQueryPlanner
from rule_dedupe.utils.duckdb_utils import create_connection, register_tables

# ---- Deterministic Testing Configuration ---------------------

# Global deterministic seed
DETERMINISTIC_SEED = 42


@pytest.fixture(autouse=True)
def set_deterministic_seed():
    """Set deterministic seed for all tests"""
    random.seed(DETERMINISTIC_SEED)
    np.random.seed(DETERMINISTIC_SEED)
    yield
    # Reset after test
    random.seed()
    np.random.seed()


# Hypothesis settings for all property-based tests
settings.register_profile(
    "deterministic",
    deadline=None,
    max_examples=50,
    derandomize=True,
    database=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.load_profile("deterministic")


# ---- Shared fixtures ------------------------------------------

SCHEMA_FIELDS = {
    "contact": {"birth_date": "date", "last_name": "string", "first_name": "string"},
    "address": {"street_address": "string"},
    "email": {"email": "string"},
}


@pytest.fixture
def con():
    """In-memory DuckDB connection, closed after the test."""
    connection = create_connection(threads=1)
    yield connection
    connection.close()


@pytest.fixture
def field_types() -> SchemaFieldTypeResolver:
    return SchemaFieldTypeResolver(fields=SCHEMA_FIELDS)


@pytest.fixture
def planner(field_types) -> CandidateQueryPlanner:
    return CandidateQueryPlanner(field_types)


@pytest.fixture
def contacts() -> pd.DataFrame:
    """Individuals 1-4 in two surname groups, 5 alone, 6 an organization."""
    return pd.DataFrame(
        {
            "id": [1, 2, 3, 4, 5, 6],
            "contact_type": [
                "Individual",
                "Individual",
                "Individual",
                "Individual",
                "Individual",
                "Organization",
            ],
            "first_name": ["Ann", "Anne", "Bob", "Bob", "Cy", ""],
            "last_name": ["Smith", "Smith", "Jones", "Jones", "Brown", "Smith"],
        },
    )


@pytest.fixture
def addresses() -> pd.DataFrame:
    """Same street under two location types."""
    return pd.DataFrame(
        {
            "id": [10, 11, 12, 13, 14],
            "contact_id": [1, 2, 3, 4, 5],
            "location_type_id": [1, 1, 2, 2, 2],
            "street_address": ["1 Main St", "1 Main St", "1 Main St", "9 Elm Rd", "1 Main St"],
        },
    )


@pytest.fixture
def emails() -> pd.DataFrame:
    """Contact 1 holds the shared address twice."""
    return pd.DataFrame(
        {
            "id": [20, 21, 22, 23],
            "contact_id": [1, 1, 2, 3],
            "email": ["a@example.org", "a@example.org", "a@example.org", "b@example.org"],
        },
    )


@pytest.fixture
def store_con(con, contacts, addresses, emails):
    """Connection with the contact, address and email tables registered."""
    register_tables(con, contact=contacts, address=addresses, email=emails)
    return con
