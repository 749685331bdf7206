from backend_carstarz.utils.wallet_key import is_valid_wallet, normalize, same_wallet

__all__ = ["is_valid_wallet", "normalize", "same_wallet"]
