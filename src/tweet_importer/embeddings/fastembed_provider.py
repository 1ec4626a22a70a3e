"""FastEmbed provider for local embeddings."""

from typing import List, Optional
import logging
import statistics
from .base import EmbeddingProvider, l2_normalize
from ..core.exceptions import EmbeddingError

logger = logging.getLogger(__name__)


class FastEmbedProvider(EmbeddingProvider):
    """
    FastEmbed provider for generating embeddings locally.

    Uses sentence-transformers/all-MiniLM-L6-v2 by default: mean pooled
    token embeddings, 384 dimensions. Vectors are L2-normalised here as
    well so the contract holds for any configured model.
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        dimension: int = 384,
        cache_dir: Optional[str] = None,
    ):
        super().__init__()
        self.model = None
        self.model_name = model_name
        self.dimension = dimension
        self.cache_dir = cache_dir

    def initialize(self) -> None:
        """Load the FastEmbed model."""
        if self._initialized:
            return
        try:
            from fastembed import TextEmbedding

            logger.info(f"Initializing FastEmbed with model: {self.model_name}")
            self.model = TextEmbedding(model_name=self.model_name, cache_dir=self.cache_dir)
            self._initialized = True
            logger.info(f"FastEmbed initialized successfully with dimension {self.dimension}")

        except ImportError:
            error = EmbeddingError(
                "FastEmbed not installed. Install with: pip install fastembed",
                provider="FastEmbed"
            )
            self.handle_initialization_error(error)
            raise error
        except Exception as e:
            error = EmbeddingError(
                f"Failed to initialize FastEmbed: {str(e)}",
                provider="FastEmbed"
            )
            self.handle_initialization_error(error)
            raise error

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for texts using FastEmbed."""
        if not self._initialized:
            raise EmbeddingError("FastEmbed not initialized", provider="FastEmbed")

        try:
            # FastEmbed returns a generator of numpy arrays
            embeddings = list(self.model.embed(texts))

            result = []
            for i, embedding in enumerate(embeddings):
                if hasattr(embedding, 'tolist'):
                    emb_list = embedding.tolist()
                else:
                    emb_list = list(embedding)
                emb_list = l2_normalize(emb_list)

                if not self.validate_embedding(emb_list):
                    text_len = len(texts[i]) if i < len(texts) else 0
                    raise EmbeddingError(
                        f"Invalid embedding generated for text {i} of length {text_len}",
                        provider="FastEmbed"
                    )

                result.append(emb_list)

            return result

        except Exception as e:
            if not isinstance(e, EmbeddingError):
                e = EmbeddingError(
                    f"Failed to generate embeddings: {str(e)}",
                    provider="FastEmbed"
                )
            self._last_error = e
            raise e

    def get_dimension(self) -> int:
        """Get embedding dimension."""
        return self.dimension

    def validate_embedding(self, embedding: List[float]) -> bool:
        """
        Validate embedding quality.

        Checks:
        1. Non-empty
        2. Correct dimension
        3. Not degenerate (all same values)
        4. No NaN or Inf values
        """
        if not embedding:
            logger.error("Empty embedding detected")
            return False

        if len(embedding) != self.dimension:
            logger.error(
                f"Dimension mismatch: expected {self.dimension}, got {len(embedding)}"
            )
            return False

        if len(set(embedding)) == 1:
            logger.error(f"Degenerate embedding detected (all values are {embedding[0]})")
            return False

        try:
            variance = statistics.variance(embedding)
            if variance < 1e-6:
                # Don't fail on low variance, just warn
                logger.warning(f"Low variance embedding detected: {variance}")
        except statistics.StatisticsError:
            pass

        if any(not isinstance(x, (int, float)) or x != x or abs(x) == float('inf')
               for x in embedding):
            logger.error("Embedding contains NaN or Inf values")
            return False

        return True

    def handle_initialization_error(self, error: Exception) -> None:
        """Handle and log initialization errors."""
        self._last_error = error
        self._initialized = False
        logger.error(f"FastEmbed initialization failed: {error}")

        if "not installed" in str(error):
            logger.info("Try: pip install fastembed")
        elif "model" in str(error).lower():
            logger.info(f"Model {self.model_name} may need to be downloaded first")
