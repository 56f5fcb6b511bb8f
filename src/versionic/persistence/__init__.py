"""SQLAlchemy tables and the versioned store."""
