"""
price-enricher: Loyalty point and reference price enrichment for ebook listings.

Discovers digital-edition items on catalog listing pages, looks up the lowest
print-edition price and the publisher's catalog presence in the National Diet
Library, and caches the enriched records so repeat visits stay cheap.
"""

__version__ = "0.1.0"
