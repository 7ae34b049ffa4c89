"""
Pydantic schemas for API request and response validation.

All FastAPI endpoints MUST use strict Pydantic models with explicit types.
`Any` is only allowed for loose JSON that is validated elsewhere: sharing
criteria payloads, condition operands and record field values.
"""
