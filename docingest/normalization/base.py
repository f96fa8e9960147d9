from abc import ABC, abstractmethod

from docingest.analysis.models import AnalysisResult
from docingest.normalization.models import NormalizedDocument


class BaseNormalizer(ABC):
    """Contract for analysis-result normalizers."""

    @abstractmethod
    def normalize(
        self,
        result: AnalysisResult,
        *,
        source_path: str,
        category: str,
    ) -> NormalizedDocument:
        """Map a service-specific analysis result into a NormalizedDocument.

        Args:
            result: Successful analysis result.
            source_path: Store path of the analyzed file.
            category: Configured category the file belongs to.

        Raises:
            NormalizationError: if the result holds no analyzable document.
        """
