"""ArtMorph generation backend: asynchronous image generation job pipeline."""

__version__ = "0.1.0"
