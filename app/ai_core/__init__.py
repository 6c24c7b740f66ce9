# AI Core module

"""
AI Core Module - Model-facing side of competency extraction.

Key responsibilities:
- Candidate extraction with structured output (extraction/)
- Name embeddings (embedding/)
- Similarity search and identity resolution (matching/)
- Prompt templates (prompts/)
"""
