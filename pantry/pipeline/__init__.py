"""Ingredient price refresh pipeline.

Enriches the automatic price catalog from web search and an LLM reader,
one (ingredient, vendor) pair at a time. Manual center prices are never
touched.
"""
