"""Payment gateway simulator."""
from .simulator import PaymentGatewaySimulator, SettlementResult

__all__ = ["PaymentGatewaySimulator", "SettlementResult"]
