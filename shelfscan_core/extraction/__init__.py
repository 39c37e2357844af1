"""
Extraction - selector buckets to normalized, ranked item records.
"""

from .field_rules import FieldRule, ReadMode, normalize_field_rules, read_field, plan_for
from .cascade import CascadeResult, ExtractionCascade, extract
from .resolvers import Resolution, ResolverContext, resolve
from .postprocess import ItemPostProcessor, postprocess_items, public_fields

__all__ = [
    'FieldRule',
    'ReadMode',
    'normalize_field_rules',
    'read_field',
    'plan_for',
    'CascadeResult',
    'ExtractionCascade',
    'extract',
    'Resolution',
    'ResolverContext',
    'resolve',
    'ItemPostProcessor',
    'postprocess_items',
    'public_fields',
]
