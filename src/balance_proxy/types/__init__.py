from balance_proxy.types.concrete import (
    AbstractPublisherMessage,
    CallbackSubscriber,
    FundingStepMessage,
    Publisher,
    PublisherMixin,
    RewriteWarning,
    SimulationAttemptFailed,
    Subscriber,
    TextMessage,
)

__all__ = (
    "AbstractPublisherMessage",
    "CallbackSubscriber",
    "FundingStepMessage",
    "Publisher",
    "PublisherMixin",
    "RewriteWarning",
    "SimulationAttemptFailed",
    "Subscriber",
    "TextMessage",
)
