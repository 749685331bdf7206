from backend_carstarz.identity.registry import IdentityRegistry, default_display_name

__all__ = ["IdentityRegistry", "default_display_name"]
