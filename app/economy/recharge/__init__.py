from app.economy.recharge.service import RechargeService

__all__ = ["RechargeService"]
