"""
Configuration settings for the Streamlit application.
"""

import os

# Page configuration for Streamlit
PAGE_CONFIG = {
    "page_title": "Competency Engine - Competency Extraction",
    "page_icon": "🧭",
    "layout": "wide",
    "initial_sidebar_state": "expanded",
}

# API Configuration
# Backend API port is configurable via PORT environment variable (default: 8000)
API_PORT = os.getenv("PORT", "8000")
API_BASE_URL = os.getenv("API_BASE_URL", f"http://localhost:{API_PORT}")
API_TIMEOUT = 180  # seconds (3 minutes); extraction streams stay open this long

# Content Settings
MIN_CONTENT_LENGTH = 10
MAX_CONTENT_LENGTH = 50_000
