import pytest
from protean.integrations.pytest import DomainFixture

from storefront.cart.store import CartStore
from storefront.config import CartSettings


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture
def settings():
    return CartSettings(_env_file=None)


@pytest.fixture
def store(settings):
    return CartStore(settings=settings)
