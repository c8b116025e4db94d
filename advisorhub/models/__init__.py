from advisorhub.models.base import Base
from advisorhub.models.advisor import Advisor
from advisorhub.models.client import Client
from advisorhub.models.lead import Lead, LeadStatusHistory
from advisorhub.models.trade import TradeRecommendation, TradeEvent
from advisorhub.models.email_log import EmailLog

__all__ = [
    "Base", "Advisor", "Client", "Lead", "LeadStatusHistory",
    "TradeRecommendation", "TradeEvent", "EmailLog",
]
