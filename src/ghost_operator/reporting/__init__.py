"""
Post-mortem reporting.
"""

__all__ = [
    "PostMortemSynthesizer",
    "render_markdown",
]

from .postmortem import PostMortemSynthesizer, render_markdown
