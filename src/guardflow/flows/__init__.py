"""
Built-in flows

Buy-with-fiat and send/review flows assembled from gates and collaborators.
"""

from guardflow.flows.buy_fiat import BuyFiatFlow
from guardflow.flows.send import SendFlow

__all__ = ["BuyFiatFlow", "SendFlow"]
