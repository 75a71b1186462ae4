"""Storefront bounded context: shopping cart, pricing and synchronization.

The cart lives in-process on the client. It is a standard (not event sourced)
aggregate that is never written to a repository: the remote cart service owns
the durable copy and the persistence adapter mirrors the item list locally.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

storefront = Domain(name="storefront")
