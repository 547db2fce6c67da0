import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1].parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(scope="session")
def catalog():
    from solar_invoicing.catalog import load_catalog

    return load_catalog()


@pytest.fixture
def composer(catalog):
    from solar_invoicing.pricing import InvoiceComposer

    return InvoiceComposer(catalog)
