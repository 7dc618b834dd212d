"""Repositories wrapping SQLAlchemy sessions."""

from .career_records import CareerRecordRepository, career_records

__all__ = ["CareerRecordRepository", "career_records"]
