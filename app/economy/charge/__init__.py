from app.economy.charge.service import ChargeService

__all__ = ["ChargeService"]
