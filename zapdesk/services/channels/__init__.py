"""Channel adapters for messaging gateways."""

from zapdesk.services.channels.base import ChannelAdapter
from zapdesk.services.channels.evolution import EvolutionAPIAdapter

__all__ = ["ChannelAdapter", "EvolutionAPIAdapter"]
