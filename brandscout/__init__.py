"""BrandScout: brand-partnership discovery for social-media creators.

Given a creator's handle on Instagram, TikTok or YouTube, find similar
creators and the brands that sponsor them.
"""

__version__ = "0.1.0"
