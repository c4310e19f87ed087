"""
Live preview: polling client and terminal renderers for the live configuration.
"""

from .renderers import RENDERERS, RenderedBlock, render_instance, render_screen
from .sync_client import PreviewFetchError, PreviewState, PreviewSyncClient

__all__ = [
    'RENDERERS',
    'RenderedBlock',
    'render_instance',
    'render_screen',
    'PreviewFetchError',
    'PreviewState',
    'PreviewSyncClient',
]
