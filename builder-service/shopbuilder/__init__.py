"""Shop App Builder: compose, preview and generate mobile storefront apps."""

__version__ = "0.1.0"
