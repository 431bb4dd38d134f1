"""
Foundation Governance Package

Core imports are lazily loaded so that importing a submodule does not pull
in the whole package. For direct module access, import from submodules:

    from foundation.governance import GovernanceEngine, Transfer
    from foundation.tokens import CW20Token
    from foundation.config import load_config
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'GovernanceEngine':
        from .governance.engine import GovernanceEngine
        return GovernanceEngine
    elif name == 'ContractHost':
        from .host import ContractHost
        return ContractHost
    elif name == 'load_config':
        from .config.loader import load_config
        return load_config
    raise AttributeError(f"module 'foundation' has no attribute {name!r}")

__all__ = ['GovernanceEngine', 'ContractHost', 'load_config']
