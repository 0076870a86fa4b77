"""
Redis stream transport for inbound edges and outbound events.
"""

from .publisher import StreamPublisher, BatchingStreamPublisher, EventPublisher
from .consumer import EdgeConsumer

__all__ = ['StreamPublisher', 'BatchingStreamPublisher', 'EventPublisher', 'EdgeConsumer']
