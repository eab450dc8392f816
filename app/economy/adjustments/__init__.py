from app.economy.adjustments.service import AdjustmentService
from app.economy.adjustments.workflow import run_admin_adjustment

__all__ = ["AdjustmentService", "run_admin_adjustment"]
