"""
stakegov Package

Core imports are lazily loaded so importing a submodule does not pull in
the whole engine. For direct module access, import from submodules:

    from stakegov.governance import GovernanceEngine
    from stakegov.exceptions import GovernanceError
"""

__version__ = "1.0.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'GovernanceEngine':
        from .governance import GovernanceEngine
        return GovernanceEngine
    elif name == 'GovernanceError':
        from .exceptions import GovernanceError
        return GovernanceError
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'stakegov' has no attribute {name!r}")

__all__ = ['GovernanceEngine', 'GovernanceError', 'load_config']
