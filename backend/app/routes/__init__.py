# Infrastructure routes (intentionally unversioned)
# All application routes are in v1/
from . import (
    health as health,
    internal as internal,
    prometheus as prometheus,
    stripe_webhooks as stripe_webhooks,
)
