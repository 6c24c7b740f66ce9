"""
Validation utilities for input data.
"""

from app.streamlit.config.settings import MAX_CONTENT_LENGTH, MIN_CONTENT_LENGTH


def validate_content(content: str) -> tuple[bool, str]:
    """
    Validate the text to extract competencies from.

    Args:
        content: CV, course description or other free-form text

    Returns:
        tuple: (is_valid, message)
    """
    if not content or not content.strip():
        return False, "Content is required."

    length = len(content.strip())
    if length < MIN_CONTENT_LENGTH:
        return False, f"Content must be at least {MIN_CONTENT_LENGTH} characters long."
    if length > MAX_CONTENT_LENGTH:
        return False, f"Content is too long ({length} characters, max {MAX_CONTENT_LENGTH})."

    return True, "Valid content."


def validate_entity_id(entity_id: str) -> tuple[bool, str]:
    """
    Validate the id of the person or course competencies are added to.

    Returns:
        tuple: (is_valid, message)
    """
    if not entity_id or not entity_id.strip():
        return False, "Select or create a person/course first."

    if any(ch.isspace() for ch in entity_id.strip()):
        return False, "Entity ids cannot contain whitespace."

    return True, "Valid entity id."
