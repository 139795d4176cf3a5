"""Data collection package for BrandScout.

This package fetches public creator profiles and recent content from
Instagram, TikTok and YouTube and normalises the heterogeneous payloads
into the canonical models of :mod:`brandscout.schemas`.  Actual fetching
needs an Apify token (Instagram, TikTok) or a YouTube Data API key; without
them only public profile pages are read.
"""
