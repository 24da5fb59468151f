"""
DSWAP Package

Constant-product AMM for one (native, token) pair with a dual-currency
staking reward engine funded by trading fees.

Core imports are lazily loaded. For direct module access, import from
submodules:

    from dswap.exchange import PricingEngine
    from dswap.staking import RewardEngine
    from dswap.deploy import deploy_pair
"""

__version__ = "0.1.0"


# Lazy imports so `import dswap` does not configure logging
def __getattr__(name):
    """Lazy module loading."""
    if name == 'PricingEngine':
        from .exchange import PricingEngine
        return PricingEngine
    elif name == 'RewardEngine':
        from .staking import RewardEngine
        return RewardEngine
    elif name == 'deploy_pair':
        from .deploy import deploy_pair
        return deploy_pair
    elif name == 'DswapException':
        from .exceptions import DswapException
        return DswapException
    raise AttributeError(f"module 'dswap' has no attribute {name!r}")

__all__ = ['PricingEngine', 'RewardEngine', 'deploy_pair', 'DswapException', '__version__']
