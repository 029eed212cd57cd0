"""SigmaGPT chat backend: authenticated chat threads over the OpenAI API."""

__version__ = "1.0.0"
