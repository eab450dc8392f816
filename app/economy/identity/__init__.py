from app.economy.identity.service import IdentityResolver

__all__ = ["IdentityResolver"]
