"""Shared test fixtures."""

import pytest

from fakes import Pipeline


@pytest.fixture()
def pipeline() -> Pipeline:
    return Pipeline()


@pytest.fixture()
def job_input() -> dict:
    return {
        "articleId": "A1",
        "productName": "Chair",
        "references": ["https://ref.test/ref1.jpg"],
    }
