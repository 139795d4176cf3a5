"""The brand-partnership discovery pipeline.

:class:`DiscoveryGateway` is the request surface; :class:`DiscoveryPipeline`
wires the stages for one platform around injected collaborators.
"""

from .gateway import DiscoveryGateway, GatewayState
from .rules import RULES, PlatformRules, rules_for
from .runner import DiscoveryPipeline

__all__ = [
    "DiscoveryGateway",
    "DiscoveryPipeline",
    "GatewayState",
    "PlatformRules",
    "RULES",
    "rules_for",
]
