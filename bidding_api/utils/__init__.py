from .slug import slugify, next_free_slug

__all__ = ["slugify", "next_free_slug"]
