"""Frontmatter repair (fix)."""

from .frontmatter_repair import FrontmatterRepairer

__all__ = ["FrontmatterRepairer"]
