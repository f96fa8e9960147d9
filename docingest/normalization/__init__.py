from docingest.normalization.base import BaseNormalizer
from docingest.normalization.models import LineItem, NormalizedDocument
from docingest.normalization.normalizer import FieldNormalizer

__all__ = ["BaseNormalizer", "FieldNormalizer", "LineItem", "NormalizedDocument"]
