"""Virtual try-on proxy in front of Gemini and the IDM-VTON Hugging Face space."""

__version__ = "0.1.0"
