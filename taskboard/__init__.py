"""
Taskboard API package.

A FastAPI service for boards, tasks and user contacts, with a
unit-of-work database abstraction (SQLAlchemy or in-memory) so multi-record
changes such as cascading deletes commit or roll back as a whole.
"""
