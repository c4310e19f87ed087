"""
Generation services - React Native project output for saved pages.
"""

from shopbuilder.services.generation.code_generator import (
    CodeGenerator,
    generate_for_app,
    sanitize_app_key,
)
from shopbuilder.services.generation.fragment_templates import (
    FRAGMENT_TEMPLATES,
    NEUTRAL_FRAGMENT,
    render_fragment,
)

__all__ = [
    'CodeGenerator',
    'generate_for_app',
    'sanitize_app_key',
    'FRAGMENT_TEMPLATES',
    'NEUTRAL_FRAGMENT',
    'render_fragment',
]
