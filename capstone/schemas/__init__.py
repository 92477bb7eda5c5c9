"""
Schemas module - Pydantic request/response models.
"""
