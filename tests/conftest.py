import pytest

from sap_engine.utils import clear_dataset_cache


@pytest.fixture(autouse=True)
def _fresh_datasets():
    """Drop cached dataset files so environment overrides apply per test."""
    clear_dataset_cache()
    yield
    clear_dataset_cache()


@pytest.fixture
def corn_sample():
    return {
        "sample_date": "2024-06-15",
        "new_leaf": {
            "Potassium": 1500,
            "Calcium": 500,
            "Magnesium": 200,
            "Nitrogen_NO3": 600,
            "Nitrogen_NH4": 100,
        },
        "old_leaf": {
            "Potassium": 2500,
            "Calcium": 500,
            "Magnesium": 200,
        },
    }
